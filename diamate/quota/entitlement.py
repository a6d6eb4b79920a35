"""
Entitlement resolver - plan + remaining quota for one caller.

Combines the caller's subscription record with today's usage ledger
counts. Reads only; never writes to the database.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..db.models import Subscription
from ..models import Entitlement, Identity, Quotas, Usage, FREE_QUOTAS, PRO_QUOTAS
from .ledger import FEATURE_CHAT, FEATURE_VISION, count_today, utc_now, utc_today

logger = logging.getLogger(__name__)

PLAN_FREE = "free"
PLAN_PRO = "pro"

PLANS = {
    PLAN_FREE: FREE_QUOTAS,
    PLAN_PRO: PRO_QUOTAS,  # 999/day is the "unlimited" sentinel
}


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timezone-aware columns back naive
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_subscription_active(sub: Optional[Subscription], now: Optional[datetime] = None) -> bool:
    """Active means status == "active" and no expiry or an expiry in the future."""
    if sub is None or sub.status != "active":
        return False
    if sub.current_period_end is None:
        return True
    return _as_utc(sub.current_period_end) > (now or utc_now())


def get_subscription(db: Session, user_id: str) -> Optional[Subscription]:
    return db.execute(
        select(Subscription).where(Subscription.user_id == user_id)
    ).scalar_one_or_none()


def resolve_plan(db: Session, user_id: str, now: Optional[datetime] = None) -> str:
    """
    Plan key for ``user_id``.

    Returns:
        str: The subscription's plan when it is active and known, otherwise "free"
    """
    sub = get_subscription(db, user_id)
    if not is_subscription_active(sub, now):
        return PLAN_FREE
    plan = (sub.plan or PLAN_FREE).lower()
    return plan if plan in PLANS else PLAN_FREE


def build_entitlement(plan: str, chat_count: int, vision_count: int, today: str) -> Entitlement:
    quotas = PLANS.get(plan, PLANS[PLAN_FREE])
    return Entitlement(
        is_pro=plan == PLAN_PRO,
        plan=plan.upper(),
        quotas=Quotas.model_validate(quotas),
        usage=Usage(
            daily_chat_count=chat_count,
            daily_vision_count=vision_count,
            last_reset_date=today,
        ),
    )


def resolve_entitlement(
    db: Session,
    identity: Optional[Identity],
    now: Optional[datetime] = None,
) -> Entitlement:
    """
    Snapshot of plan, quotas and today's usage.

    Anonymous callers and lookup failures get the FREE plan with zero usage;
    this never raises for a caller-side problem.
    """
    now = now or utc_now()
    today = utc_today(now)
    plan = PLAN_FREE
    chat_count = 0
    vision_count = 0

    if identity is not None:
        try:
            plan = resolve_plan(db, identity.user_id, now)
            chat_count = count_today(db, identity.user_id, FEATURE_CHAT, now)
            vision_count = count_today(db, identity.user_id, FEATURE_VISION, now)
        except Exception as e:
            logger.error(
                f"Entitlement lookup failed: {e}",
                exc_info=True,
                extra={"extra_fields": {"user_id": identity.user_id}}
            )
            plan, chat_count, vision_count = PLAN_FREE, 0, 0

    return build_entitlement(plan, chat_count, vision_count, today)
