"""Ingest Mars rover photos for one rover and sol."""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from astrolabe.config import settings
from astrolabe.database import dialect_insert
from astrolabe.jobs.base import (
    Failed,
    Ingested,
    IngestionJob,
    JobResult,
    JobSummary,
    NotReady,
)
from astrolabe.models.mars import MarsImage
from astrolabe.schemas.nasa import MarsPhotoPayload, MarsPhotosPayload
from astrolabe.services.nasa_client import Failure, NASAClient

logger = logging.getLogger(__name__)


class MarsPhotosIngestionJob(IngestionJob):
    """Page through a sol's photos, inserting ones not seen before.

    Photo ids never change once assigned, so existing rows are left as they
    are. Paging stops at the first empty page or after ``max_pages``.
    """

    name = "mars_photos"

    def __init__(
        self,
        client: NASAClient,
        *args: Any,
        max_pages: int | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(client, *args, **kwargs)
        self.max_pages = max_pages or settings.mars_max_pages

    def lock_key(self, params: dict[str, Any]) -> str:
        return f"{self.name}:{params['rover']}"

    def resolve_params(
        self, rover: str | None = None, sol: int | None = None, **_: Any
    ) -> dict[str, Any]:
        if not rover or sol is None:
            raise ValueError("mars_photos needs both a rover and a sol")
        return {"rover": rover.lower(), "sol": int(sol)}

    def _row(self, rover: str, photo: MarsPhotoPayload) -> dict[str, Any]:
        now = self.now()
        return {
            "nasa_id": photo.id,
            "rover": photo.rover.name.lower() if photo.rover else rover,
            "sol": photo.sol,
            "camera": photo.camera.name,
            "img_src": photo.img_src,
            "earth_date": photo.earth_date,
            "labels": None,
            "created_at": now,
            "updated_at": now,
        }

    def _insert_new(
        self, db: Session, rover: str, photos: list[MarsPhotoPayload]
    ) -> tuple[int, int]:
        ids = {photo.id for photo in photos}
        existing = set(
            db.scalars(select(MarsImage.nasa_id).where(MarsImage.nasa_id.in_(ids)))
        )
        rows = [self._row(rover, photo) for photo in photos]
        insert = dialect_insert(db)
        stmt = insert(MarsImage).on_conflict_do_nothing(
            index_elements=[MarsImage.nasa_id]
        )
        db.execute(stmt, rows)
        db.commit()
        inserted = len(ids - existing)
        return inserted, len(photos) - inserted

    async def ingest(self, db: Session, rover: str, sol: int) -> JobResult:
        summary = JobSummary()
        page = 1
        while page <= self.max_pages:
            result = await self.client.fetch_mars_photos(rover, sol, page=page)
            if isinstance(result, Failure):
                return Failed.from_failure(result, summary)

            try:
                payload = MarsPhotosPayload.model_validate(result.payload)
            except ValidationError:
                logger.warning(
                    "Mars photo page %d for %s sol %d is missing or incomplete",
                    page,
                    rover,
                    sol,
                )
                if page == 1:
                    return NotReady(f"no photo listing for {rover} sol {sol}")
                break

            if not payload.photos:
                break

            inserted, ignored = self._insert_new(db, rover, payload.photos)
            summary.inserted += inserted
            summary.skipped += ignored
            page += 1
        else:
            logger.warning(
                "Stopped paging %s sol %d after %d pages",
                rover,
                sol,
                self.max_pages,
            )

        return Ingested(summary)
