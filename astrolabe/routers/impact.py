"""Near-Earth objects making close approaches in a date window."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from astrolabe.database import get_db
from astrolabe.models.neo import NeowsObject
from astrolabe.responses import (
    api_response,
    paginate,
    server_error_response,
    validated_query,
)
from astrolabe.schemas.api import NearbyQuery, NeowsObjectOut
from astrolabe.security import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/impact", tags=["impact"])


@router.get("/nearby")
@limiter.limit("60/minute")
def nearby_objects(
    request: Request,
    query: NearbyQuery = Depends(validated_query(NearbyQuery)),
    db: Session = Depends(get_db),
):
    """Objects approaching between ``date_from`` and ``date_to``, closest first."""
    start, end = query.window
    stmt = (
        select(NeowsObject)
        .where(NeowsObject.close_approach_date.between(start, end))
        .order_by(NeowsObject.miss_distance_km.asc().nulls_last(), NeowsObject.id)
    )
    try:
        items, meta = paginate(
            db, stmt, page=query.page, per_page=query.limit, schema=NeowsObjectOut
        )
    except Exception:
        logger.exception("Nearby object query failed for %s to %s", start, end)
        return server_error_response()
    return api_response(items, meta=meta.model_dump())
