"""
DiaMate API client used by the app.

All AI calls go through the server; the client never holds provider keys.
Chat and photo analysis never raise for HTTP, connection or malformed-reply
problems: they return a payload whose text or notes carry a localized
explanation and whose ``error`` field names the failure.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Union

import httpx

from ..models import ChatMessage, Entitlement, default_entitlement
from ..store import HealthStore

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0

FRIENDLY_ERRORS = {
    401: {
        "tr": "🔐 Oturum süresi doldu. Lütfen tekrar giriş yapın.",
        "en": "🔐 Session expired. Please log in again.",
    },
    402: {
        "tr": "🔒 Bu özellik PRO abonelik gerektirir. Yükseltmek için tıklayın!",
        "en": "🔒 This feature requires PRO subscription. Tap to upgrade!",
    },
    429: {
        "tr": "⚠️ Günlük limitinize ulaştınız. PRO'ya yükseltin veya yarın tekrar deneyin.",
        "en": "⚠️ Daily limit reached. Upgrade to PRO or try again tomorrow.",
    },
    500: {
        "tr": "❌ Sunucu hatası. Lütfen biraz sonra tekrar deneyin.",
        "en": "❌ Server error. Please try again in a moment.",
    },
}

CONNECTION_ERROR = {
    "tr": "❌ Bağlantı hatası. İnternet bağlantınızı kontrol edip tekrar deneyin.",
    "en": "❌ Connection error. Please check your internet and try again.",
}

VISION_NOTES = {
    "pro_required": {
        "tr": "🔒 Fotoğraf analizi PRO abonelik gerektirir.",
        "en": "🔒 Photo analysis requires PRO subscription.",
    },
    "quota_exceeded": {
        "tr": "⚠️ Günlük fotoğraf analizi limitine ulaşıldı.",
        "en": "⚠️ Daily photo analysis limit reached.",
    },
    "analysis_failed": {
        "tr": "❌ Analiz başarısız. Tekrar deneyin.",
        "en": "❌ Analysis failed. Please try again.",
    },
}


def _pick(messages: Dict[str, str], lang: str) -> str:
    return messages["en"] if lang == "en" else messages["tr"]


class ClientAPIError(Exception):
    """Non-2xx response from the DiaMate API."""

    def __init__(self, status: int, message: str = "Request failed", code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.message = message
        self.code = code


def friendly_error_text(error: ClientAPIError, lang: str = "tr") -> str:
    """User-facing text for an API error, by HTTP status."""
    known = FRIENDLY_ERRORS.get(error.status)
    if known:
        return _pick(known, lang)
    return f"❌ Error: {error.message}" if lang == "en" else f"❌ Hata: {error.message}"


@dataclass
class ChatResult:
    text: str
    error: Optional[str] = None


def as_data_url(image: str) -> str:
    """Raw base64 JPEG data becomes a data URL; data URLs pass through."""
    if image.startswith("data:"):
        return image
    return f"data:image/jpeg;base64,{image}"


class DiaMateClient:
    """
    Async client for the AI and entitlement endpoints.

    Args:
        base_url: API root, e.g. "https://api.example.org"
        store: App state; supplies language and recent context, receives
            entitlement updates and local usage counts
        token_provider: Returns the current access token, or None when signed out
        http_client: Optional preconfigured httpx.AsyncClient (tests pass
            one built on httpx.MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        store: HealthStore,
        token_provider: Callable[[], Optional[str]] = lambda: None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.store = store
        self.token_provider = token_provider
        self._client = http_client or httpx.AsyncClient(timeout=DEFAULT_TIMEOUT)
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "DiaMateClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.token_provider()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(self, method: str, endpoint: str, json: Optional[Dict[str, Any]] = None) -> Any:
        """
        Send one request and decode the JSON reply.

        Raises:
            ClientAPIError: on a non-2xx status
            httpx.HTTPError: on transport failures
        """
        response = await self._client.request(
            method, f"{self.base_url}{endpoint}", json=json, headers=self._headers(),
        )
        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            raise ClientAPIError(
                response.status_code,
                body.get("message") or "Request failed",
                body.get("code"),
            )
        return response.json()

    async def chat(self, messages: List[Union[ChatMessage, Dict[str, str]]]) -> ChatResult:
        """Send the conversation with the store's language and recent context."""
        lang = self.store.language
        payload = {
            "messages": [
                m.model_dump() if isinstance(m, ChatMessage) else dict(m) for m in messages
            ],
            "lang": lang,
            "recentContext": self.store.get_recent_context(),
        }
        try:
            data = await self.request("POST", "/ai-chat", json=payload)
        except ClientAPIError as e:
            logger.warning(f"Chat request rejected: {e.status} {e.code or ''}".rstrip())
            return ChatResult(text=friendly_error_text(e, lang), error=e.code or f"http_{e.status}")
        except httpx.HTTPError as e:
            logger.warning(f"Chat request failed: {e}")
            return ChatResult(text=_pick(CONNECTION_ERROR, lang), error="connection_error")
        except ValueError as e:
            logger.warning(f"Chat reply is not JSON: {e}")
            return ChatResult(text=_pick(CONNECTION_ERROR, lang), error="invalid_response")

        if not isinstance(data, dict):
            logger.warning("Chat reply is not a JSON object")
            return ChatResult(text=_pick(CONNECTION_ERROR, lang), error="invalid_response")

        self.store.record_usage("chat")
        return ChatResult(text=data.get("text") or "")

    async def analyze_photo(self, image: str) -> Dict[str, Any]:
        """Analyze a meal photo given as raw base64 or a data URL."""
        lang = self.store.language
        payload = {"imageDataUrl": as_data_url(image), "lang": lang}
        try:
            data = await self.request("POST", "/ai-vision", json=payload)
        except ClientAPIError as e:
            kind = {402: "pro_required", 429: "quota_exceeded"}.get(e.status, "analysis_failed")
            return self._failed_analysis(kind, lang)
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Photo analysis failed: {e}")
            return self._failed_analysis("analysis_failed", lang)

        if not isinstance(data, dict):
            logger.warning("Photo analysis reply is not a JSON object")
            return self._failed_analysis("analysis_failed", lang)

        self.store.record_usage("vision")
        return data

    @staticmethod
    def _failed_analysis(kind: str, lang: str) -> Dict[str, Any]:
        return {
            "items": [],
            "total_carbs_g": 0,
            "notes": _pick(VISION_NOTES[kind], lang),
            "confidence": "low",
            "error": kind,
        }

    async def backup_health_data(self) -> Dict[str, Any]:
        """
        Upload the persisted readings and meals to the server backup.

        Raises:
            ClientAPIError: on a non-2xx status
            httpx.HTTPError: on transport failures
        """
        snapshot = self.store.persisted_snapshot()
        return await self.request("POST", "/health-sync", json={
            "glucoseReadings": snapshot["glucoseReadings"],
            "mealLogs": snapshot["mealLogs"],
        })

    async def get_health_summary(self, days: int = 7, include_readings: bool = False) -> Dict[str, Any]:
        """Summary of the server backup; ``{}`` on any failure."""
        flag = "true" if include_readings else "false"
        try:
            data = await self.request("GET", f"/health-summary?days={days}&includeReadings={flag}")
        except (ClientAPIError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Health summary unavailable: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    async def refresh_entitlement(self) -> Entitlement:
        """
        Fetch the entitlement and store it.

        Any failure stores and returns the FREE default instead.
        """
        try:
            data = await self.request("GET", "/entitlement")
            entitlement = Entitlement.model_validate(data)
        except (ClientAPIError, httpx.HTTPError, ValueError) as e:
            logger.warning(f"Entitlement refresh failed, using FREE defaults: {e}")
            entitlement = default_entitlement(self.store.today())

        self.store.set_entitlement(entitlement)
        return entitlement
