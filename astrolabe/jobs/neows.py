"""Ingest the NeoWs near-Earth object feed."""

from __future__ import annotations

import json
import logging
from datetime import date, timedelta
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
    today_utc,
)
from astrolabe.models.neo import NeowsObject
from astrolabe.schemas.nasa import CloseApproachPayload, NeoFeedPayload, NeoPayload
from astrolabe.services.nasa_client import Failure

logger = logging.getLogger(__name__)

_PRESERVED_ON_UPDATE = {"neo_id", "created_at"}


class NeowsIngestionJob(IngestionJob):
    """Upsert every object in a date window, keyed by NeoWs reference id."""

    name = "neows"

    def resolve_params(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        **_: Any,
    ) -> dict[str, Any]:
        start = start_date or today_utc()
        end = end_date or start + timedelta(days=settings.neows_window_days)
        return {"start_date": start, "end_date": end}

    def _row(
        self, neo: NeoPayload, approach: CloseApproachPayload | None
    ) -> dict[str, Any]:
        raw_approach = neo.first_approach
        now = self.now()
        return {
            "neo_id": neo.natural_key,
            "name": neo.name,
            "estimated_diameter": json.dumps(neo.estimated_diameter),
            "is_potentially_hazardous": neo.is_potentially_hazardous_asteroid,
            "close_approach": json.dumps(raw_approach) if raw_approach else None,
            "orbit_data": json.dumps(neo.orbital_data) if neo.orbital_data else None,
            "close_approach_date": approach.close_approach_date if approach else None,
            "miss_distance_km": approach.miss_distance_km if approach else None,
            "created_at": now,
            "updated_at": now,
        }

    async def ingest(
        self, db: Session, start_date: date, end_date: date
    ) -> JobResult:
        result = await self.client.fetch_neo_feed(start_date, end_date)
        if isinstance(result, Failure):
            return Failed.from_failure(result)

        window = f"{start_date.isoformat()} to {end_date.isoformat()}"
        try:
            feed = NeoFeedPayload.model_validate(result.payload)
        except ValidationError:
            logger.warning("NeoWs data for %s is missing or incomplete", window)
            return NotReady(f"NeoWs feed for {window} is incomplete")

        summary = JobSummary()
        objects: list[tuple[NeoPayload, CloseApproachPayload | None]] = []
        for approach_day, raw_objects in feed.near_earth_objects.items():
            for raw in raw_objects:
                try:
                    neo = NeoPayload.model_validate(raw)
                    approach = (
                        CloseApproachPayload.model_validate(neo.first_approach)
                        if neo.first_approach
                        else None
                    )
                    objects.append((neo, approach))
                except ValidationError:
                    summary.skipped += 1
                    logger.warning(
                        "Skipping malformed NEO on %s",
                        approach_day,
                        extra={"neo": raw.get("id") if isinstance(raw, dict) else None},
                    )

        keys = {neo.natural_key for neo, _ in objects}
        seen: set[str] = set()
        if keys:
            seen.update(
                db.scalars(
                    select(NeowsObject.neo_id).where(NeowsObject.neo_id.in_(keys))
                )
            )

        insert = dialect_insert(db)
        for neo, approach in objects:
            row = self._row(neo, approach)
            stmt = insert(NeowsObject).values(**row)
            stmt = stmt.on_conflict_do_update(
                index_elements=[NeowsObject.neo_id],
                set_={
                    column: getattr(stmt.excluded, column)
                    for column in row
                    if column not in _PRESERVED_ON_UPDATE
                },
            )
            db.execute(stmt)
            if neo.natural_key in seen:
                summary.updated += 1
            else:
                summary.inserted += 1
                seen.add(neo.natural_key)
        db.commit()

        return Ingested(summary)
