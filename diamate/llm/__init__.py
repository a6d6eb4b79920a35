"""LLM module - provides unified interface for LLM API providers."""

from .base import LLMProvider, LLMMessage, LLMResponse, LLMProviderError
from .openai_provider import OpenAICompatibleProvider
from .factory import create_llm_provider, get_chat_provider, get_vision_provider

__all__ = [
    'LLMProvider',
    'LLMMessage',
    'LLMResponse',
    'LLMProviderError',
    'OpenAICompatibleProvider',
    'create_llm_provider',
    'get_chat_provider',
    'get_vision_provider',
]
