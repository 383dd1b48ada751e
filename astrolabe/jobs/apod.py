"""Ingest the Astronomy Picture of the Day and classify its mood."""

from __future__ import annotations

import json
import logging
from datetime import date
from typing import Any

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from astrolabe.database import dialect_insert
from astrolabe.jobs.base import (
    Failed,
    Ingested,
    IngestionJob,
    JobResult,
    JobSummary,
    NotReady,
    today_utc,
)
from astrolabe.models.apod import ApodMood
from astrolabe.schemas.nasa import ApodPayload
from astrolabe.services.mood import classify_mood
from astrolabe.services.nasa_client import Failure

logger = logging.getLogger(__name__)

SUPPORTED_MEDIA_TYPE = "image"

# Columns a re-ingest must leave alone.
_PRESERVED_ON_UPDATE = {"apod_date", "created_at"}


class ApodIngestionJob(IngestionJob):
    """One APOD record per date, overwritten on every re-ingest."""

    name = "apod"

    def resolve_params(self, day: date | None = None, **_: Any) -> dict[str, Any]:
        return {"day": day or today_utc()}

    async def ingest(self, db: Session, day: date) -> JobResult:
        result = await self.client.fetch_apod(day)
        if isinstance(result, Failure):
            return Failed.from_failure(result)

        try:
            apod = ApodPayload.model_validate(result.payload)
        except ValidationError as exc:
            logger.warning(
                "APOD data for %s is missing or incomplete",
                day.isoformat(),
                extra={"errors": exc.errors(include_url=False)},
            )
            return NotReady(f"APOD payload for {day.isoformat()} is incomplete")

        if apod.media_type != SUPPORTED_MEDIA_TYPE:
            logger.info(
                "APOD for %s is a %s, not an image; skipping",
                day.isoformat(),
                apod.media_type,
            )
            return Ingested(JobSummary(skipped=1))

        analysis = classify_mood(apod.title, apod.explanation)
        now = self.now()
        values = {
            "apod_date": day,
            "nasa_id": apod.date.isoformat(),
            "title": apod.title,
            "url": apod.best_url,
            "media_type": apod.media_type,
            "mood": analysis.mood,
            "mood_score": analysis.score,
            "color_palette": json.dumps(analysis.palette),
            "ai_summary": apod.explanation or None,
            "created_at": now,
            "updated_at": now,
        }

        existing_id = db.scalar(select(ApodMood.id).where(ApodMood.apod_date == day))
        insert = dialect_insert(db)
        stmt = insert(ApodMood).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ApodMood.apod_date],
            set_={
                column: getattr(stmt.excluded, column)
                for column in values
                if column not in _PRESERVED_ON_UPDATE
            },
        )
        db.execute(stmt)
        db.commit()

        if existing_id is None:
            return Ingested(JobSummary(inserted=1))
        return Ingested(JobSummary(updated=1))
