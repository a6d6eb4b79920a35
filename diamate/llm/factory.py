"""
LLM Provider Factory - Creates the configured LLM provider instance.
"""

from typing import Optional

from ..config import settings
from ..config.settings import GROQ_BASE_URL, OPENAI_BASE_URL
from .base import LLMProvider
from .openai_provider import OpenAICompatibleProvider

DEFAULT_BASE_URLS = {
    "groq": GROQ_BASE_URL,
    "openai": OPENAI_BASE_URL,
}


def create_llm_provider(
    provider: str = "openai",
    api_key: str = "",
    model: Optional[str] = None,
    base_url: Optional[str] = None,
    **kwargs
) -> Optional[LLMProvider]:
    """
    Create an LLM provider instance based on configuration.

    Args:
        provider: Provider name ("groq" or "openai")
        api_key: API key for the provider
        model: Model name (uses provider default if not specified)
        base_url: Custom base URL (uses provider default if not specified)
        **kwargs: Additional provider-specific parameters

    Returns:
        LLMProvider instance, or None if api_key is not configured
    """
    if not api_key:
        return None

    if provider not in DEFAULT_BASE_URLS:
        raise ValueError(f"Unsupported LLM provider: {provider}")

    params = {
        "api_key": api_key,
        "base_url": base_url or DEFAULT_BASE_URLS[provider],
        "name": provider,
    }
    if model:
        params["model"] = model
    params.update(kwargs)
    return OpenAICompatibleProvider(**params)


def get_chat_provider() -> Optional[LLMProvider]:
    """FastAPI dependency: the chat provider, or None when no key is configured."""
    resolved = settings.chat_provider()
    if resolved is None:
        return None
    provider, api_key, model, base_url = resolved
    return create_llm_provider(
        provider, api_key, model, base_url,
        default_max_tokens=1024,
        timeout=settings.llm_timeout_seconds,
    )


def get_vision_provider() -> Optional[LLMProvider]:
    """FastAPI dependency: the vision provider, or None without an OpenAI key."""
    resolved = settings.vision_provider()
    if resolved is None:
        return None
    provider, api_key, model, base_url = resolved
    return create_llm_provider(
        provider, api_key, model, base_url,
        default_max_tokens=500,
        timeout=settings.llm_timeout_seconds,
    )
