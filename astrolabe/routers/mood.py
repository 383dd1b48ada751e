"""Daily picture mood lookup."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from astrolabe.database import get_db
from astrolabe.models.apod import ApodMood
from astrolabe.responses import (
    ApiValidationError,
    NotFoundError,
    api_response,
    server_error_response,
)
from astrolabe.schemas.api import ApodMoodOut, parse_iso_date
from astrolabe.security import limiter
from astrolabe.services.cache import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mood", tags=["mood"])

TODAY = "today"


@router.get("/{date}")
@limiter.limit("60/minute")
def get_mood(request: Request, date: str, db: Session = Depends(get_db)):
    """Mood record for ``today`` (UTC) or a ``YYYY-MM-DD`` date."""
    if date == TODAY:
        day = utcnow().date()
    else:
        try:
            day = parse_iso_date(date)
        except ValueError as exc:
            raise ApiValidationError({"date": [str(exc)]}) from exc

    try:
        record = db.scalar(select(ApodMood).where(ApodMood.apod_date == day))
    except Exception:
        logger.exception("Mood lookup failed for %s", day.isoformat())
        return server_error_response()

    if record is None:
        raise NotFoundError("APOD data not found for the specified date.")
    return api_response(ApodMoodOut.model_validate(record))
