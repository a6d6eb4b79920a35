"""
Entitlement Models - subscription plan, quotas and daily usage.
"""

from typing import Optional

from pydantic import BaseModel

from .health import CamelModel


class Identity(BaseModel):
    """Caller identity resolved from a verified access token."""
    user_id: str
    email: Optional[str] = None


class Quotas(CamelModel):
    chat_per_day: int
    vision_per_day: int
    pdf_export: Optional[bool] = None
    doctor_share: Optional[bool] = None
    cloud_sync: Optional[bool] = None
    reminders: Optional[int] = None


class Usage(CamelModel):
    daily_chat_count: int = 0
    daily_vision_count: int = 0
    last_reset_date: str  # YYYY-MM-DD, UTC


class Entitlement(CamelModel):
    """Resolved plan, limits and today's usage for one identity."""
    is_pro: bool = False
    plan: str = "FREE"
    expires_at: Optional[str] = None
    quotas: Quotas
    usage: Usage


FREE_QUOTAS = {
    "chatPerDay": 5,
    "visionPerDay": 2,
    "pdfExport": False,
    "doctorShare": False,
    "cloudSync": False,
    "reminders": 2,
}

PRO_QUOTAS = {
    "chatPerDay": 999,
    "visionPerDay": 999,
    "pdfExport": True,
    "doctorShare": True,
    "cloudSync": True,
    "reminders": 999,
}


def default_entitlement(today: str) -> Entitlement:
    """FREE plan with zero usage stamped with ``today``."""
    return Entitlement(
        is_pro=False,
        plan="FREE",
        quotas=Quotas.model_validate(FREE_QUOTAS),
        usage=Usage(last_reset_date=today),
    )
