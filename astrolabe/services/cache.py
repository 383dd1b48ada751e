"""Keyed cache for decoded upstream payloads.

The client never touches a global cache: a backend is built once per process
(see ``build_cache``) and passed in. ``MemoryCache`` serves tests and single
process runs; ``DatabaseCache`` persists entries with an explicit expiry so
separate job processes can reuse them.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections.abc import Callable, Mapping
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from sqlalchemy.orm import Session, sessionmaker

from astrolabe.database import SessionLocal, dialect_insert
from astrolabe.models.ops import NasaCacheEntry

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    return value if value.tzinfo else value.replace(tzinfo=UTC)


def cache_key(path: str, params: Mapping[str, Any] | None = None) -> str:
    """Return a deterministic key for ``path`` plus its query parameters.

    Parameters are sorted by name so the same request built in a different
    order lands in the same slot.
    """
    pairs = sorted((str(k), str(v)) for k, v in (params or {}).items())
    query = "&".join(f"{k}={v}" for k, v in pairs)
    digest = hashlib.sha256(f"{path}?{query}".encode()).hexdigest()
    return f"nasa_api:{digest}"


class CacheBackend(Protocol):
    """Get/set capability with per-entry expiry."""

    def get(self, key: str) -> Any | None:
        """Return the stored payload, or None when absent or expired."""

    def set(self, key: str, value: Any, ttl: timedelta, path: str = "") -> None:
        """Store ``value`` until ``now + ttl``."""

    def has_expired(self, key: str) -> bool:
        """True when no live entry exists for ``key``."""


class MemoryCache:
    """Process-local dict cache. Expired entries are dropped on access."""

    def __init__(self, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[datetime, Any]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: timedelta, path: str = "") -> None:
        with self._lock:
            self._entries[key] = (self._clock() + ttl, value)

    def has_expired(self, key: str) -> bool:
        return self.get(key) is None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


class DatabaseCache:
    """Cache rows in the ``nasa_cache`` table.

    Reads and writes are blocking session calls. The jobs run one at a time
    from the CLI, so ``NASAClient.fetch`` calls them inline.
    """

    def __init__(self, session_factory: sessionmaker, clock: Clock = utcnow) -> None:
        self._session_factory = session_factory
        self._clock = clock

    def _live_entry(self, db: Session, key: str) -> NasaCacheEntry | None:
        entry = (
            db.query(NasaCacheEntry).filter(NasaCacheEntry.cache_key == key).first()
        )
        if entry is None or _as_utc(entry.expires_at) <= self._clock():
            return None
        return entry

    def get(self, key: str) -> Any | None:
        with self._session_factory() as db:
            entry = self._live_entry(db, key)
            if entry is None:
                return None
            try:
                return json.loads(entry.payload)
            except json.JSONDecodeError:
                logger.warning("Discarding undecodable cache entry %s", key)
                return None

    def set(self, key: str, value: Any, ttl: timedelta, path: str = "") -> None:
        now = self._clock()
        with self._session_factory() as db:
            insert = dialect_insert(db)
            stmt = insert(NasaCacheEntry).values(
                cache_key=key,
                path=path,
                payload=json.dumps(value),
                fetched_at=now,
                expires_at=now + ttl,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[NasaCacheEntry.cache_key],
                set_={
                    "payload": stmt.excluded.payload,
                    "fetched_at": stmt.excluded.fetched_at,
                    "expires_at": stmt.excluded.expires_at,
                },
            )
            db.execute(stmt)
            db.commit()

    def has_expired(self, key: str) -> bool:
        with self._session_factory() as db:
            return self._live_entry(db, key) is None


def build_cache(
    backend: str, session_factory: sessionmaker | None = None
) -> CacheBackend:
    """Construct the configured cache backend."""
    if backend == "database":
        return DatabaseCache(session_factory or SessionLocal)
    return MemoryCache()
