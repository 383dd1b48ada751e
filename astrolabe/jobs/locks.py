"""Per-resource lease so two runs of the same job never overlap."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from astrolabe.config import settings
from astrolabe.database import SessionLocal, dialect_insert
from astrolabe.models.ops import JobLock
from astrolabe.services.cache import Clock, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Lease:
    name: str
    owner: str


class LeaseLock:
    """Row-per-name lease in ``job_locks``.

    A lease is granted when no row exists or the existing row has expired.
    The TTL should exceed the longest expected run so a crashed worker only
    blocks the resource until its lease lapses.
    """

    def __init__(
        self,
        session_factory: sessionmaker = SessionLocal,
        ttl: timedelta | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.ttl = ttl or timedelta(seconds=settings.job_lock_ttl_seconds)
        self._clock = clock

    def acquire(self, name: str) -> Lease | None:
        """Return a lease for ``name`` or None when another run holds it."""
        now = self._clock()
        owner = uuid.uuid4().hex
        with self._session_factory() as db:
            insert = dialect_insert(db)
            stmt = insert(JobLock).values(
                name=name, owner=owner, expires_at=now + self.ttl
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[JobLock.name],
                set_={
                    "owner": stmt.excluded.owner,
                    "expires_at": stmt.excluded.expires_at,
                },
                where=JobLock.expires_at <= now,
            )
            db.execute(stmt)
            db.commit()
            holder = db.scalar(select(JobLock.owner).where(JobLock.name == name))

        if holder != owner:
            logger.info("Lease %s is held by another run", name)
            return None
        return Lease(name, owner)

    def release(self, lease: Lease) -> None:
        with self._session_factory() as db:
            db.execute(
                delete(JobLock).where(
                    JobLock.name == lease.name, JobLock.owner == lease.owner
                )
            )
            db.commit()
