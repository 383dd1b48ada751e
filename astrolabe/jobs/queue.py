"""In-process job queue with bounded retries and a dead-letter table."""

from __future__ import annotations

import asyncio
import json
import logging
import traceback
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy.orm import sessionmaker

from astrolabe.config import settings
from astrolabe.database import SessionLocal
from astrolabe.jobs.base import IngestionJob, JobResult
from astrolabe.models.ops import FailedJob

logger = logging.getLogger(__name__)


@dataclass
class QueuedJob:
    job: IngestionJob
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class JobOutcome:
    """What happened to one queued job. ``result`` is None when dead-lettered."""

    job: str
    params: dict[str, Any]
    attempts: int
    result: JobResult | None


class JobQueue:
    """Runs queued jobs one after another.

    A job that raises is retried up to ``max_attempts`` times with
    ``retry_delay`` seconds between attempts, then written to
    ``failed_jobs``. Returned results (``Ingested``, ``NotReady``,
    ``Failed``) are final and never retried.
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self._session_factory = session_factory
        self.max_attempts = max(1, max_attempts or settings.job_max_attempts)
        self.retry_delay = (
            retry_delay if retry_delay is not None else settings.job_retry_delay_seconds
        )
        self._sleep = sleep
        self._pending: deque[QueuedJob] = deque()

    def __len__(self) -> int:
        return len(self._pending)

    def enqueue(self, job: IngestionJob, **params: Any) -> None:
        self._pending.append(QueuedJob(job, params))
        logger.info("Queued %s", job.name, extra={"job_params": _jsonable(params)})

    async def drain(self) -> list[JobOutcome]:
        """Run every pending job, including ones queued while draining."""
        outcomes = []
        while self._pending:
            outcomes.append(await self._run(self._pending.popleft()))
        return outcomes

    async def _run(self, item: QueuedJob) -> JobOutcome:
        name = item.job.name
        attempt = 0
        while True:
            attempt += 1
            try:
                result = await item.job.run(**item.params)
            except Exception as exc:
                if attempt >= self.max_attempts:
                    self._dead_letter(item, exc, attempt)
                    return JobOutcome(name, item.params, attempt, None)
                logger.warning(
                    "%s attempt %d/%d raised; retrying in %.0fs",
                    name,
                    attempt,
                    self.max_attempts,
                    self.retry_delay,
                )
                await self._sleep(self.retry_delay)
            else:
                return JobOutcome(name, item.params, attempt, result)

    def _dead_letter(self, item: QueuedJob, exc: Exception, attempts: int) -> None:
        logger.error(
            "%s failed after %d attempts; moved to failed_jobs",
            item.job.name,
            attempts,
            extra={"job_params": _jsonable(item.params)},
        )
        with self._session_factory() as db:
            db.add(
                FailedJob(
                    job=item.job.name,
                    params=json.dumps(_jsonable(item.params)),
                    exception="".join(traceback.format_exception(exc)),
                    attempts=attempts,
                )
            )
            db.commit()


def _jsonable(params: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(params, default=str))
