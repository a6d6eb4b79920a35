"""
Request helpers shared by the gated endpoints.
"""

from typing import Any, Dict, Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from ..core.errors import APIError, ErrorKind
from ..models import Identity
from ..quota.gate import INVALID_SESSION, localized
from ..utils.auth import bearer_token, verify_access_token

M = TypeVar("M", bound=BaseModel)

AUTH_REQUIRED_MESSAGE = "Giriş yapmanız gerekiyor"


def require_token(request: Request) -> str:
    """Bearer token of the request, or 401 auth_required."""
    token = bearer_token(request)
    if not token:
        raise APIError(ErrorKind.AUTH_REQUIRED, AUTH_REQUIRED_MESSAGE)
    return token


def require_identity(request: Request, lang: str = "tr") -> Identity:
    """Verified caller, or 401 auth_required / invalid_token."""
    identity = verify_access_token(require_token(request))
    if identity is None:
        raise APIError(ErrorKind.INVALID_TOKEN, localized(INVALID_SESSION, lang))
    return identity


async def read_json(request: Request) -> Dict[str, Any]:
    """Request body as a JSON object, or 400 invalid_json."""
    try:
        body = await request.json()
    except ValueError:
        raise APIError(ErrorKind.INVALID_JSON)
    if not isinstance(body, dict):
        raise APIError(ErrorKind.INVALID_JSON)
    return body


def parse_body(model: Type[M], body: Dict[str, Any], message: str) -> M:
    """Validate ``body`` against ``model``, or 400 invalid_request with ``message``."""
    try:
        return model.model_validate(body)
    except ValidationError:
        raise APIError(ErrorKind.INVALID_REQUEST, message)
