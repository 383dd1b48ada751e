"""Fan out Mars photo ingestion for the newest sol of each rover."""

from __future__ import annotations

import logging

from pydantic import ValidationError

from astrolabe.config import settings
from astrolabe.jobs.mars_photos import MarsPhotosIngestionJob
from astrolabe.jobs.queue import JobQueue
from astrolabe.schemas.nasa import ManifestPayload
from astrolabe.services.nasa_client import Failure, NASAClient

logger = logging.getLogger(__name__)


class MarsPhotoDispatcher:
    """Look up each tracked rover's latest sol and queue one job for it.

    The manifest lookup is cheap; the photo ingest may take many pages, so
    only the newest sol is ever queued. A rover whose manifest is missing or
    malformed is skipped without affecting the others.
    """

    def __init__(
        self,
        client: NASAClient,
        queue: JobQueue,
        job: MarsPhotosIngestionJob,
        rovers: list[str] | None = None,
    ) -> None:
        self.client = client
        self.queue = queue
        self.job = job
        self.rovers = rovers if rovers is not None else settings.tracked_rovers

    async def dispatch_all(self) -> dict[str, int]:
        """Queue one job per rover; returns the sol queued for each rover."""
        dispatched: dict[str, int] = {}
        for rover in self.rovers:
            try:
                max_sol = await self._latest_sol(rover)
            except Exception:
                logger.exception("Manifest lookup failed for rover %s", rover)
                continue
            if max_sol is None:
                continue

            self.queue.enqueue(self.job, rover=rover, sol=max_sol)
            dispatched[rover] = max_sol
            logger.info("Dispatched %s for %s sol %d", self.job.name, rover, max_sol)

        logger.info("Mars photo dispatch complete", extra={"dispatched": dispatched})
        return dispatched

    async def _latest_sol(self, rover: str) -> int | None:
        result = await self.client.fetch_rover_manifest(rover)
        if isinstance(result, Failure):
            logger.warning(
                "Could not retrieve manifest for rover %s: %s", rover, result.message
            )
            return None
        try:
            manifest = ManifestPayload.model_validate(result.payload)
        except ValidationError:
            logger.warning("Manifest for rover %s has no max_sol; skipping", rover)
            return None
        return manifest.photo_manifest.max_sol
