"""
Configuration Settings.
"""

from pydantic_settings import BaseSettings
from typing import Optional, Tuple


GROQ_BASE_URL = "https://api.groq.com/openai/v1"
OPENAI_BASE_URL = "https://api.openai.com/v1"


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = "DiaMate API"
    app_version: str = "1.0.0"
    debug: bool = False

    # AI providers (server-side only, never exposed to clients)
    groq_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    chat_model_groq: str = "llama-3.3-70b-versatile"
    chat_model_openai: str = "gpt-4o-mini"
    vision_model: str = "gpt-4o"
    groq_base_url: str = GROQ_BASE_URL
    openai_base_url: str = OPENAI_BASE_URL
    llm_timeout_seconds: float = 60.0

    # Identity (hosted auth service JWT)
    jwt_secret: str = "your-jwt-secret-change-this-in-production"
    jwt_algorithm: str = "HS256"
    jwt_audience: Optional[str] = "authenticated"
    access_token_expire_minutes: int = 60

    # Usage ledger / subscriptions
    database_url: str = "sqlite:///./data/diamate.db"

    # Request limits
    max_image_data_url_chars: int = int(1.5 * 1024 * 1024 * 1.33)  # base64 of 1.5MB
    chat_history_window: int = 10

    # CORS
    cors_allow_origin: str = "*"

    # Client store (device storage directory)
    store_path: str = "./data/device"

    # Logging configuration
    log_level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file_path: str = "./logs/diamate.log"
    log_file_enabled: bool = True
    log_console_enabled: bool = True
    log_json_format: bool = True  # JSON format for files, human-readable for console
    log_api_requests: bool = True  # Log all API requests/responses
    log_llm_calls: bool = True  # Log all LLM calls with token usage

    class Config:
        env_file = ".env"
        case_sensitive = False

    def chat_provider(self) -> Optional[Tuple[str, str, str, str]]:
        """
        Resolve the chat provider: Groq when its key is set, OpenAI otherwise.

        Returns:
            (provider, api_key, model, base_url) or None if no key is configured
        """
        if self.groq_api_key:
            return "groq", self.groq_api_key, self.chat_model_groq, self.groq_base_url
        if self.openai_api_key:
            return "openai", self.openai_api_key, self.chat_model_openai, self.openai_base_url
        return None

    def vision_provider(self) -> Optional[Tuple[str, str, str, str]]:
        """Vision needs an image-capable model, so only OpenAI qualifies."""
        if not self.openai_api_key:
            return None
        return "openai", self.openai_api_key, self.vision_model, self.openai_base_url


settings = Settings()
