"""
Shared test fixtures and configuration.
"""

import pytest
import os
from unittest.mock import AsyncMock, MagicMock

# Set test environment variables before importing app modules
os.environ["JWT_SECRET"] = "test-jwt-secret-for-testing"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["GROQ_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = "test-openai-key"
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("STORE_PATH", "/tmp/diamate_test_device")

from fastapi.testclient import TestClient  # noqa: E402

from diamate.db import Base, SessionLocal, database, init_db  # noqa: E402
from diamate.llm import LLMResponse, get_chat_provider, get_vision_provider  # noqa: E402
from diamate.main import app  # noqa: E402
from diamate.utils.auth import create_access_token  # noqa: E402


@pytest.fixture
def db_session():
    """Fresh in-memory ledger and subscription tables per test."""
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=database.engine)


def make_provider(content: str = "Merhaba!") -> MagicMock:
    provider = MagicMock()
    provider.chat_completion = AsyncMock(return_value=LLMResponse(content=content, model="test-model"))
    return provider


@pytest.fixture
def chat_provider():
    provider = make_provider("Kan şekeriniz hedef aralıkta görünüyor.")
    app.dependency_overrides[get_chat_provider] = lambda: provider
    yield provider
    app.dependency_overrides.pop(get_chat_provider, None)


@pytest.fixture
def vision_provider():
    provider = make_provider(
        '{"items":[{"name":"pilav","portion":"150g","carbs_g":45}],'
        '"total_carbs_g":45,"total_calories":300,"glycemicImpact":"high"}'
    )
    app.dependency_overrides[get_vision_provider] = lambda: provider
    yield provider
    app.dependency_overrides.pop(get_vision_provider, None)


@pytest.fixture
def client(db_session):
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()


@pytest.fixture
def user_id():
    return "user-123"


@pytest.fixture
def auth_headers(user_id):
    token = create_access_token(user_id, email="ayse@example.com")
    return {"Authorization": f"Bearer {token}"}
