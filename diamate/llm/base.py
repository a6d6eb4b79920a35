"""
LLM Provider Base - Abstract base for all LLM API providers.
Supports multimodal messages (text + images).
"""

from abc import ABC, abstractmethod
from typing import Dict, Any, Optional, List, Union
from dataclasses import dataclass, field


class LLMProviderError(Exception):
    """Upstream provider failure (transport error, non-2xx, malformed reply)."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[Any] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass
class LLMMessage:
    """
    Represents a message in a conversation.
    Supports multimodal content (text and images).
    """
    role: str  # "system", "user", "assistant"
    content: Union[str, List[Dict[str, Any]]]  # text or multimodal content blocks

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        """Create a text-only message."""
        return LLMMessage(role=role, content=text)

    @staticmethod
    def multimodal(role: str, text: str, image_urls: Optional[List[str]] = None,
                   detail: Optional[str] = None) -> "LLMMessage":
        """
        Create a multimodal message: the text first, then the images.

        Args:
            role: Message role
            text: Text content (the instruction for the images)
            image_urls: Image URLs or data URLs
            detail: Optional image detail level ("low", "high", "auto")
        """
        content_parts: List[Dict[str, Any]] = [{"type": "text", "text": text}]

        for url in image_urls or []:
            image_url: Dict[str, Any] = {"url": url}
            if detail:
                image_url["detail"] = detail
            content_parts.append({"type": "image_url", "image_url": image_url})

        return LLMMessage(role=role, content=content_parts)


@dataclass
class LLMResponse:
    """Response from an LLM API call."""
    content: str
    model: str = ""
    usage: Dict[str, int] = field(default_factory=dict)
    raw: Optional[Dict[str, Any]] = None


class LLMProvider(ABC):
    """
    Abstract base class for LLM API providers.
    All providers must implement chat_completion.
    """

    name = "base"

    def __init__(self, api_key: str, model: str, base_url: Optional[str] = None,
                 default_temperature: float = 0.7, default_max_tokens: int = 1024):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens

    @abstractmethod
    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """
        Send a chat completion request.

        Args:
            messages: List of conversation messages (supports multimodal)
            temperature: Sampling temperature override
            max_tokens: Max tokens override
            **kwargs: Additional provider-specific parameters

        Returns:
            LLMResponse with the generated content

        Raises:
            LLMProviderError: on any upstream failure
        """
        pass

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        """Convert LLMMessage list to API-compatible format."""
        return [{"role": m.role, "content": m.content} for m in messages]
