"""Shared ingestion job plumbing.

A job run resolves its parameters, takes the resource lease, fetches through
the NASA client, shape-checks the payload, and upserts by natural key. The
outcome is one of three values:

- ``Ingested``: records were written (or deliberately skipped).
- ``NotReady``: upstream has nothing usable yet, or a previous run still
  holds the lease. Expected; try again next cycle.
- ``Failed``: the client returned a ``Failure``. Logged and skipped.

Any other exception is logged with context and re-raised so the queue can
retry it and eventually dead-letter it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, ClassVar

from sqlalchemy.orm import Session, sessionmaker

from astrolabe.database import SessionLocal
from astrolabe.jobs.locks import LeaseLock
from astrolabe.observability.metrics import INGESTED_RECORDS, JOB_RUNS
from astrolabe.services.cache import Clock, utcnow
from astrolabe.services.nasa_client import Failure, NASAClient

logger = logging.getLogger(__name__)


@dataclass
class JobSummary:
    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    @property
    def processed(self) -> int:
        return self.inserted + self.updated


@dataclass(frozen=True)
class Ingested:
    summary: JobSummary
    status: ClassVar[str] = "ingested"


@dataclass(frozen=True)
class NotReady:
    reason: str
    summary: JobSummary = field(default_factory=JobSummary)
    status: ClassVar[str] = "not_ready"


@dataclass(frozen=True)
class Failed:
    reason: str
    status_code: int | None = None
    summary: JobSummary = field(default_factory=JobSummary)
    status: ClassVar[str] = "failed"

    @classmethod
    def from_failure(
        cls, failure: Failure, summary: JobSummary | None = None
    ) -> Failed:
        return cls(failure.message, failure.status_code, summary or JobSummary())


JobResult = Ingested | NotReady | Failed


def today_utc() -> date:
    return utcnow().date()


class IngestionJob(ABC):
    """Base class for one upstream resource's ingestion."""

    name: ClassVar[str]

    def __init__(
        self,
        client: NASAClient,
        session_factory: sessionmaker = SessionLocal,
        lock: LeaseLock | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.client = client
        self.session_factory = session_factory
        self.lock = lock or LeaseLock(session_factory, clock=clock)
        self.clock = clock

    def lock_key(self, params: dict[str, Any]) -> str:
        return self.name

    @abstractmethod
    def resolve_params(self, **params: Any) -> dict[str, Any]:
        """Fill defaults (usually today in UTC) for unspecified parameters."""

    @abstractmethod
    async def ingest(self, db: Session, **params: Any) -> JobResult:
        """Fetch, validate, map and persist one run's worth of records."""

    def now(self) -> datetime:
        return self.clock()

    async def run(self, **params: Any) -> JobResult:
        params = self.resolve_params(**params)
        context = {"job": self.name, "job_params": _loggable(params)}
        logger.info("%s starting", self.name, extra=context)

        lease = self.lock.acquire(self.lock_key(params))
        if lease is None:
            result: JobResult = NotReady("previous run is still in flight")
        else:
            try:
                with self.session_factory() as db:
                    result = await self.ingest(db, **params)
            except Exception:
                JOB_RUNS.labels(self.name, "error").inc()
                logger.exception("%s failed", self.name, extra=context)
                raise
            finally:
                self.lock.release(lease)

        self._report(result, context)
        return result

    def _report(self, result: JobResult, context: dict[str, Any]) -> None:
        JOB_RUNS.labels(self.name, result.status).inc()
        summary = result.summary
        for action in ("inserted", "updated", "skipped"):
            count = getattr(summary, action)
            if count:
                INGESTED_RECORDS.labels(self.name, action).inc(count)

        extra = {
            **context,
            "outcome": result.status,
            "inserted": summary.inserted,
            "updated": summary.updated,
            "skipped": summary.skipped,
        }
        if isinstance(result, Ingested):
            logger.info(
                "%s complete. Inserted: %d, Updated: %d, Skipped: %d",
                self.name,
                summary.inserted,
                summary.updated,
                summary.skipped,
                extra=extra,
            )
        elif isinstance(result, NotReady):
            logger.warning("%s not ready: %s", self.name, result.reason, extra=extra)
        else:
            logger.error(
                "%s skipped this cycle: %s", self.name, result.reason, extra=extra
            )


def _loggable(params: dict[str, Any]) -> dict[str, Any]:
    return {
        key: value.isoformat() if isinstance(value, date) else value
        for key, value in params.items()
    }
