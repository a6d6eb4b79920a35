"""
Server-side backup of the app's glucose readings and meal logs, and the
summary built from it.

Uploads are idempotent: a reading is identified by its timestamp, a meal by
its device id, and rows already stored are left untouched.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..db import HealthReading, MealRecord
from ..models import GlucoseReading, MealLog
from ..models.health import ensure_aware
from ..quota.ledger import utc_now
from ..store.app_state import (
    DEFAULT_TARGET_HIGH, DEFAULT_TARGET_LOW, HYPER_ABOVE, HYPO_BELOW, round_half_up,
)

logger = logging.getLogger(__name__)

MAX_MGDL = 1000
DEFAULT_SUMMARY_DAYS = 7
MAX_SUMMARY_DAYS = 90
_ID_CHUNK = 500


def _as_utc(value: datetime) -> datetime:
    return ensure_aware(value).astimezone(timezone.utc)


def _commit(db: Session, rows: List[Any]) -> None:
    if not rows:
        return
    try:
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise


def valid_readings(raw: Iterable[Any]) -> Tuple[List[GlucoseReading], int]:
    """
    Keep the entries that parse as readings with 0 < mg/dL < 1000.

    Returns:
        (readings, number of entries skipped)
    """
    readings: List[GlucoseReading] = []
    skipped = 0
    for item in raw:
        try:
            reading = GlucoseReading.model_validate(item)
        except ValidationError:
            skipped += 1
            continue
        if not 0 < reading.mgdl < MAX_MGDL:
            skipped += 1
            continue
        readings.append(reading)
    return readings, skipped


def save_readings(
    db: Session,
    user_id: str,
    raw: Iterable[Any],
    now: Optional[datetime] = None,
) -> Tuple[int, int]:
    """
    Store uploaded readings whose timestamp is not backed up yet.

    Returns:
        (rows inserted, entries skipped as invalid)
    """
    readings, skipped = valid_readings(raw)
    by_time: Dict[datetime, GlucoseReading] = {}
    for reading in readings:
        by_time.setdefault(_as_utc(reading.timestamp), reading)
    if not by_time:
        return 0, skipped

    stored = db.execute(
        select(HealthReading.timestamp).where(
            HealthReading.user_id == user_id,
            HealthReading.timestamp >= min(by_time),
            HealthReading.timestamp <= max(by_time),
        )
    ).scalars()
    known = {_as_utc(ts) for ts in stored}

    imported_at = now or utc_now()
    rows = [
        HealthReading(
            user_id=user_id,
            reading_id=reading.id,
            timestamp=ts,
            mgdl=round_half_up(reading.mgdl),
            source=reading.source or "manual",
            context=reading.context,
            note=reading.note,
            device=reading.device,
            imported_at=imported_at,
        )
        for ts, reading in by_time.items()
        if ts not in known
    ]
    _commit(db, rows)
    return len(rows), skipped


def save_meals(
    db: Session,
    user_id: str,
    raw: Iterable[Any],
    now: Optional[datetime] = None,
) -> Tuple[int, int]:
    """
    Store uploaded meal logs whose id is not backed up yet.

    Returns:
        (rows inserted, entries skipped as invalid)
    """
    meals: Dict[str, MealLog] = {}
    skipped = 0
    for item in raw:
        try:
            meal = MealLog.model_validate(item)
        except ValidationError:
            skipped += 1
            continue
        meals.setdefault(meal.id, meal)
    if not meals:
        return 0, skipped

    ids = list(meals)
    known = set()
    for start in range(0, len(ids), _ID_CHUNK):
        chunk = ids[start:start + _ID_CHUNK]
        known.update(db.execute(
            select(MealRecord.meal_id).where(MealRecord.user_id == user_id, MealRecord.meal_id.in_(chunk))
        ).scalars())

    imported_at = now or utc_now()
    rows = [
        MealRecord(
            user_id=user_id,
            meal_id=meal_id,
            timestamp=_as_utc(meal.timestamp),
            total_carbs=meal.total_carbs,
            data=meal.to_storage(),
            imported_at=imported_at,
        )
        for meal_id, meal in meals.items()
        if meal_id not in known
    ]
    _commit(db, rows)
    return len(rows), skipped


def parse_days(value: Optional[str]) -> int:
    """Query value to a window in days: 7 when missing or unparseable, clamped to 1..90."""
    try:
        days = int(value) if value is not None else DEFAULT_SUMMARY_DAYS
    except ValueError:
        days = DEFAULT_SUMMARY_DAYS
    return max(1, min(days, MAX_SUMMARY_DAYS))


def _as_reading(row: HealthReading) -> Dict[str, Any]:
    return GlucoseReading(
        id=row.reading_id or str(row.id),
        mgdl=row.mgdl,
        timestamp=_as_utc(row.timestamp),
        source=row.source,
        context=row.context,
        note=row.note,
        device=row.device,
    ).to_storage()


def summarize_health(
    db: Session,
    user_id: str,
    days: int = DEFAULT_SUMMARY_DAYS,
    include_readings: bool = False,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Summary of the backed-up data over the last ``days`` days.

    Averages use the default 70-180 mg/dL target band; with no readings
    ``avgBG`` and ``timeInRangePct`` are None.
    """
    since = (now or utc_now()) - timedelta(days=days)
    rows = db.execute(
        select(HealthReading)
        .where(HealthReading.user_id == user_id, HealthReading.timestamp >= since)
        .order_by(HealthReading.timestamp.desc())
    ).scalars().all()
    meals_logged = db.execute(
        select(func.count(MealRecord.id)).where(MealRecord.user_id == user_id, MealRecord.timestamp >= since)
    ).scalar_one()

    values = [row.mgdl for row in rows]
    in_range = [v for v in values if DEFAULT_TARGET_LOW <= v <= DEFAULT_TARGET_HIGH]
    summary = {
        "days": days,
        "totalReadings": len(values),
        "avgBG": round_half_up(sum(values) / len(values)) if values else None,
        "timeInRangePct": round_half_up(len(in_range) / len(values) * 100) if values else None,
        "hypoEvents": len([v for v in values if v < HYPO_BELOW]),
        "hyperEvents": len([v for v in values if v > HYPER_ABOVE]),
        "mealsLogged": meals_logged,
        "sources": sorted({row.source for row in rows}),
        "lastReadingAt": _as_utc(rows[0].timestamp).isoformat() if rows else None,
    }

    result: Dict[str, Any] = {"summary": summary}
    if include_readings:
        result["readings"] = [_as_reading(row) for row in rows]
    return result
