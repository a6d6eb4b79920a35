"""
Usage ledger - append-only record of billable AI calls.

Daily quotas are counted against this table using the UTC calendar day.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import Request
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db.models import UsageEvent

logger = logging.getLogger(__name__)

FEATURE_CHAT = "chat"
FEATURE_VISION = "vision"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today(now: Optional[datetime] = None) -> str:
    """Today's UTC date as YYYY-MM-DD."""
    now = now or utc_now()
    return now.astimezone(timezone.utc).date().isoformat()


def utc_day_start(now: Optional[datetime] = None) -> datetime:
    """Midnight UTC of the day containing ``now``."""
    now = (now or utc_now()).astimezone(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def count_today(db: Session, user_id: str, feature: str, now: Optional[datetime] = None) -> int:
    """Count ledger rows for ``user_id``/``feature`` since today's UTC midnight."""
    stmt = (
        select(func.count())
        .select_from(UsageEvent)
        .where(UsageEvent.user_id == user_id)
        .where(UsageEvent.feature == feature)
        .where(UsageEvent.used_at >= utc_day_start(now))
    )
    return int(db.execute(stmt).scalar_one() or 0)


def record_usage(
    db: Session,
    user_id: str,
    feature: str,
    ip_address: str = "unknown",
    now: Optional[datetime] = None,
) -> UsageEvent:
    """Append one usage row and commit."""
    event = UsageEvent(
        user_id=user_id,
        feature=feature,
        ip_address=ip_address or "unknown",
        used_at=now or utc_now(),
    )
    db.add(event)
    db.commit()
    return event


def record_usage_safely(
    db: Session,
    user_id: str,
    feature: str,
    ip_address: str = "unknown",
) -> bool:
    """
    Best-effort variant of :func:`record_usage`.

    A failed insert is logged and rolled back; it never fails the request
    that produced the usage.

    Returns:
        bool: True if the row was written
    """
    try:
        record_usage(db, user_id, feature, ip_address)
        return True
    except Exception as e:
        db.rollback()
        logger.warning(
            f"Usage tracking failed: {e}",
            extra={"extra_fields": {"user_id": user_id, "feature": feature}}
        )
        return False


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
