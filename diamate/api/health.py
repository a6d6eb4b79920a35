"""
Health API endpoints - server backup of readings and meals, and its summary.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from ..core.errors import server_error_boundary
from ..db import get_db
from ..models import HealthSyncRequest, HealthSyncResponse
from ..services.health_backup import parse_days, save_meals, save_readings, summarize_health
from .deps import parse_body, read_json, require_identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.post("/health-sync")
@server_error_boundary
async def health_sync(request: Request, db: Session = Depends(get_db)):
    """
    Back up the app's glucose readings and meal logs.

    Entries already stored are ignored, so the app can upload its whole
    persisted state every time.

    Returns:
        dict: ``{"success", "syncedReadings", "syncedMeals", "skipped"}``
    """
    identity = require_identity(request)
    body = await read_json(request)
    upload = parse_body(HealthSyncRequest, body, "glucoseReadings and mealLogs must be lists")

    readings_saved, readings_skipped = save_readings(db, identity.user_id, upload.glucose_readings)
    meals_saved, meals_skipped = save_meals(db, identity.user_id, upload.meal_logs)

    logger.info(
        "Health data backed up",
        extra={"extra_fields": {
            "user_id": identity.user_id,
            "readings": readings_saved,
            "meals": meals_saved,
            "skipped": readings_skipped + meals_skipped,
        }}
    )
    result = HealthSyncResponse(
        synced_readings=readings_saved,
        synced_meals=meals_saved,
        skipped=readings_skipped + meals_skipped,
    )
    return result.model_dump(by_alias=True)


@router.get("/health-summary")
@server_error_boundary
async def health_summary(request: Request, db: Session = Depends(get_db)):
    """
    Summarize the backed-up data.

    Query parameters: ``days`` (default 7, 1-90) and ``includeReadings``
    ("true" adds the readings of the window, newest first).
    """
    identity = require_identity(request)
    days = parse_days(request.query_params.get("days"))
    include_readings = request.query_params.get("includeReadings") == "true"
    return summarize_health(db, identity.user_id, days=days, include_readings=include_readings)
