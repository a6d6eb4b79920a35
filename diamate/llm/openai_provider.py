"""
OpenAI-compatible LLM Provider.
Talks to any chat/completions endpoint with the OpenAI wire format:
OpenAI itself and Groq's OpenAI-compatible API.
"""

import httpx
import logging
import time
from typing import Optional, List, Dict, Any

from ..config.settings import OPENAI_BASE_URL, settings
from .base import LLMProvider, LLMMessage, LLMResponse, LLMProviderError

logger = logging.getLogger(__name__)


class OpenAICompatibleProvider(LLMProvider):
    """
    Provider for OpenAI-style chat/completions APIs.
    Default base_url points to the OpenAI API.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        base_url: str = OPENAI_BASE_URL,
        default_temperature: float = 0.7,
        default_max_tokens: int = 1024,
        timeout: float = 60.0,
        name: str = "openai",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(api_key, model, base_url, default_temperature, default_max_tokens)
        self.timeout = timeout
        self.name = name
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def chat_completion(
        self,
        messages: List[LLMMessage],
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        **kwargs
    ) -> LLMResponse:
        """Send request to the Chat Completions endpoint."""
        start_time = time.time()
        url = f"{self.base_url}/chat/completions"
        payload: Dict[str, Any] = {
            "model": kwargs.get("model", self.model),
            "messages": self._format_messages(messages),
            "max_tokens": max_tokens or self.default_max_tokens,
        }
        # Vision calls leave sampling at the provider default
        if temperature is not None or not kwargs.get("omit_temperature"):
            payload["temperature"] = temperature if temperature is not None else self.default_temperature

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(
                f"LLM API call starting: provider={self.name}, model={payload['model']}, "
                f"{len(messages)} messages"
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=self._get_headers())
        except httpx.HTTPError as e:
            self._log_failure(payload, start_time, str(e))
            raise LLMProviderError(f"{self.name} request failed: {e}") from e

        try:
            data = resp.json()
        except ValueError:
            data = {"raw": resp.text[:500]}

        if resp.status_code >= 400:
            self._log_failure(payload, start_time, f"HTTP {resp.status_code}: {data}")
            raise LLMProviderError(
                f"{self.name} returned HTTP {resp.status_code}",
                status_code=resp.status_code,
                body=data,
            )

        try:
            content = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            self._log_failure(payload, start_time, f"malformed reply: {data}")
            raise LLMProviderError(f"{self.name} returned a malformed reply", body=data) from e

        usage = data.get("usage", {}) or {}
        duration_ms = (time.time() - start_time) * 1000
        if settings.log_llm_calls:
            logger.info(
                "LLM API call completed",
                extra={"extra_fields": {
                    "provider": self.name,
                    "model": data.get("model", payload["model"]),
                    "prompt_tokens": usage.get("prompt_tokens", 0),
                    "completion_tokens": usage.get("completion_tokens", 0),
                    "total_tokens": usage.get("total_tokens", 0),
                    "duration_ms": round(duration_ms, 2),
                }}
            )

        return LLMResponse(
            content=content,
            model=data.get("model", payload["model"]),
            usage=usage,
            raw=data,
        )

    def _log_failure(self, payload: Dict[str, Any], start_time: float, error: str) -> None:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(
            f"LLM API call failed: {error}",
            extra={"extra_fields": {
                "provider": self.name,
                "model": payload.get("model"),
                "duration_ms": round(duration_ms, 2),
                "error": error,
            }}
        )
