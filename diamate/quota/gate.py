"""
Entitlement-gated operation shared by the chat and vision endpoints.

Pipeline: verify identity -> resolve plan (pro bypasses quota) -> compare
today's ledger count with the feature's daily limit -> run the provider
call -> append one ledger row (best effort).

The quota check and the ledger insert are not in one transaction; two
concurrent requests from the same user can both pass the check.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Optional, TypeVar

from sqlalchemy.orm import Session

from ..core.errors import APIError, ErrorKind
from ..core.logging_config import LoggerAdapter
from ..llm import LLMProviderError
from ..models import FREE_QUOTAS, Identity
from ..utils.auth import verify_access_token
from .entitlement import PLAN_PRO, resolve_plan
from .ledger import FEATURE_CHAT, FEATURE_VISION, count_today, record_usage_safely

logger = logging.getLogger(__name__)

T = TypeVar("T")

INVALID_SESSION = {"en": "Invalid session", "tr": "Geçersiz oturum"}


def localized(messages: Dict[str, str], lang: str) -> str:
    return messages["en"] if lang == "en" else messages["tr"]


@dataclass(frozen=True)
class GatedFeature:
    """A quota-limited feature: ledger tag, free daily limit and user-facing texts."""
    name: str
    daily_limit: int
    limit_messages: Dict[str, str] = field(default_factory=dict)
    unavailable_message: str = "AI service temporarily unavailable"

    def limit_message(self, lang: str) -> str:
        return localized(self.limit_messages, lang).format(limit=self.daily_limit)


CHAT = GatedFeature(
    name=FEATURE_CHAT,
    daily_limit=FREE_QUOTAS["chatPerDay"],
    limit_messages={
        "en": "Daily chat limit reached ({limit}/day). Upgrade to PRO for unlimited!",
        "tr": "Günlük sohbet limitine ulaştınız ({limit}/gün). Sınırsız erişim için PRO'ya yükseltin!",
    },
)

VISION = GatedFeature(
    name=FEATURE_VISION,
    daily_limit=FREE_QUOTAS["visionPerDay"],
    limit_messages={
        "en": "Daily photo analysis limit reached ({limit}/day). Upgrade to PRO!",
        "tr": "Günlük fotoğraf analizi limitine ulaştınız ({limit}/gün). PRO'ya yükseltin!",
    },
    unavailable_message="Vision service error",
)


@dataclass
class GateResult:
    identity: Identity
    is_pro: bool
    used_today: int = 0


class EntitlementGate:
    """Identity + quota enforcement against the usage ledger."""

    def __init__(
        self,
        db: Session,
        verify_token: Callable[[str], Optional[Identity]] = verify_access_token,
    ):
        self.db = db
        self.verify_token = verify_token

    def check(self, token: str, feature: GatedFeature, lang: str = "tr") -> GateResult:
        """
        Admit or reject one call of ``feature``.

        Raises:
            APIError: invalid_token when the token is rejected,
                quota_exceeded when a free user is at the daily limit
        """
        identity = self.verify_token(token)
        if identity is None:
            raise APIError(ErrorKind.INVALID_TOKEN, localized(INVALID_SESSION, lang))

        log = LoggerAdapter(logger, {"user_id": identity.user_id, "feature": feature.name})

        if resolve_plan(self.db, identity.user_id) == PLAN_PRO:
            log.debug("Pro plan, quota check skipped")
            return GateResult(identity=identity, is_pro=True)

        used_today = count_today(self.db, identity.user_id, feature.name)
        if used_today >= feature.daily_limit:
            log.info(
                "Daily quota exceeded",
                extra={"extra_fields": {"used_today": used_today, "limit": feature.daily_limit}}
            )
            raise APIError(
                ErrorKind.QUOTA_EXCEEDED,
                feature.limit_message(lang),
                code=ErrorKind.QUOTA_EXCEEDED,
            )

        return GateResult(identity=identity, is_pro=False, used_today=used_today)

    def record(self, result: GateResult, feature: GatedFeature, ip_address: str) -> bool:
        return record_usage_safely(self.db, result.identity.user_id, feature.name, ip_address)


async def run_gated_operation(
    gate: EntitlementGate,
    feature: GatedFeature,
    token: str,
    lang: str,
    ip_address: str,
    operation: Callable[[GateResult], Awaitable[T]],
) -> T:
    """
    Run ``operation`` behind the entitlement gate and record its usage.

    Provider failures become ``ai_error`` with a generic message; the detail
    is logged only. APIErrors raised by ``operation`` (e.g. parse_error)
    propagate and no usage is recorded for them.
    """
    admitted = gate.check(token, feature, lang)

    try:
        payload = await operation(admitted)
    except LLMProviderError as e:
        logger.error(
            f"AI provider error for {feature.name}: {e}",
            extra={"extra_fields": {
                "user_id": admitted.identity.user_id,
                "feature": feature.name,
                "status_code": e.status_code,
            }}
        )
        raise APIError(ErrorKind.AI_ERROR, feature.unavailable_message) from e

    gate.record(admitted, feature, ip_address)
    return payload
