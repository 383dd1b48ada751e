"""Mars rover photo listing."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session

from astrolabe.database import get_db
from astrolabe.models.mars import MarsImage
from astrolabe.responses import (
    api_response,
    paginate,
    server_error_response,
    validated_query,
)
from astrolabe.schemas.api import MarsPhotoOut, MarsPhotosQuery
from astrolabe.security import limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mars", tags=["mars"])


@router.get("/photos")
@limiter.limit("60/minute")
def list_photos(
    request: Request,
    query: MarsPhotosQuery = Depends(validated_query(MarsPhotosQuery)),
    db: Session = Depends(get_db),
):
    stmt = select(MarsImage)
    if query.rover:
        stmt = stmt.where(MarsImage.rover == query.rover)
    if query.camera:
        stmt = stmt.where(MarsImage.camera == query.camera.upper())
    if query.sol is not None:
        stmt = stmt.where(MarsImage.sol == query.sol)
    stmt = stmt.order_by(MarsImage.earth_date.desc(), MarsImage.nasa_id.desc())

    try:
        items, meta = paginate(
            db, stmt, page=query.page, per_page=query.limit, schema=MarsPhotoOut
        )
    except Exception:
        logger.exception("Mars photo query failed")
        return server_error_response()
    return api_response(items, meta=meta.model_dump())
