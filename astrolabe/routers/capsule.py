"""Date capsules: what the sky looked like on a given day."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from astrolabe.database import get_db
from astrolabe.models.apod import ApodMood
from astrolabe.responses import (
    NotFoundError,
    api_response,
    server_error_response,
    validated_query,
)
from astrolabe.schemas.api import ApodMoodOut, CapsuleQuery
from astrolabe.security import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/capsule", tags=["capsule"])


@router.get("/birthday")
@limiter.limit("60/minute")
def birthday_capsule(
    request: Request,
    query: CapsuleQuery = Depends(validated_query(CapsuleQuery)),
    db: Session = Depends(get_db),
):
    """Bundle the records stored for ``date``; today that is the APOD."""
    try:
        apod = db.scalar(select(ApodMood).where(ApodMood.apod_date == query.date))
    except Exception:
        logger.exception("Capsule lookup failed for %s", query.date.isoformat())
        return server_error_response()

    if apod is None:
        raise NotFoundError(
            "Capsule data not found for the specified date. "
            "It may not have been processed yet."
        )
    return api_response({"apod": ApodMoodOut.model_validate(apod)})
