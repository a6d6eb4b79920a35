from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, Index, Integer, Text, UniqueConstraint

from .database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UsageEvent(Base):
    """One billable AI call. Rows are only ever inserted."""

    __tablename__ = "usage_tracking"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    feature = Column(Text, nullable=False)  # chat | vision
    ip_address = Column(Text, nullable=False, default="unknown")
    used_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_usage_tracking_user_feature_time", "user_id", "feature", "used_at"),
    )


class Subscription(Base):
    """Billing state, written by the billing integration and only read here."""

    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, unique=True, nullable=False)
    plan = Column(Text, nullable=False, default="free")  # free | pro
    status = Column(Text, nullable=False, default="inactive")  # active | canceled | past_due | ...
    current_period_end = Column(DateTime(timezone=True), nullable=True)


class HealthReading(Base):
    """Server backup of one glucose reading uploaded by the app."""

    __tablename__ = "glucose_readings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    reading_id = Column(Text, nullable=True)  # id assigned on the device
    timestamp = Column(DateTime(timezone=True), nullable=False)
    mgdl = Column(Integer, nullable=False)
    source = Column(Text, nullable=False, default="manual")
    context = Column(Text, nullable=True)
    note = Column(Text, nullable=True)
    device = Column(Text, nullable=True)
    imported_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "timestamp", name="uq_glucose_readings_user_time"),
    )


class MealRecord(Base):
    """Server backup of one meal log, kept in the device's camelCase format."""

    __tablename__ = "meal_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False)
    meal_id = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    total_carbs = Column(Float, nullable=False, default=0)
    data = Column(JSON, nullable=False)
    imported_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "meal_id", name="uq_meal_logs_user_meal"),
        Index("idx_meal_logs_user_time", "user_id", "timestamp"),
    )
