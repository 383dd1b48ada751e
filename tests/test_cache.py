"""Tests for cache keys and the memory/database cache backends."""

from __future__ import annotations

from datetime import timedelta

from astrolabe.models.ops import NasaCacheEntry
from astrolabe.services.cache import (
    DatabaseCache,
    MemoryCache,
    build_cache,
    cache_key,
)


class TestCacheKey:
    def test_parameter_order_does_not_matter(self):
        first = cache_key("/neo/rest/v1/feed", {"start_date": "a", "end_date": "b"})
        second = cache_key("/neo/rest/v1/feed", {"end_date": "b", "start_date": "a"})
        assert first == second

    def test_path_and_values_change_the_key(self):
        base = cache_key("/planetary/apod", {"date": "2024-06-01"})
        assert base != cache_key("/planetary/apod", {"date": "2024-06-02"})
        assert base != cache_key("/other", {"date": "2024-06-01"})

    def test_key_is_namespaced(self):
        assert cache_key("/planetary/apod").startswith("nasa_api:")


class TestMemoryCache:
    def test_hit_within_ttl(self, fixed_clock):
        cache = MemoryCache(clock=fixed_clock)
        cache.set("k", {"value": 1}, timedelta(minutes=5))
        assert cache.get("k") == {"value": 1}
        assert cache.has_expired("k") is False

    def test_entry_expires(self, fixed_clock):
        cache = MemoryCache(clock=fixed_clock)
        cache.set("k", [1, 2], timedelta(minutes=5))
        fixed_clock.now += timedelta(minutes=5)
        assert cache.get("k") is None
        assert cache.has_expired("k") is True

    def test_missing_key(self):
        assert MemoryCache().get("absent") is None


class TestDatabaseCache:
    def test_round_trip_and_expiry(self, session_factory, fixed_clock):
        cache = DatabaseCache(session_factory, clock=fixed_clock)
        cache.set("k", {"photos": []}, timedelta(minutes=30), path="/mars")
        assert cache.get("k") == {"photos": []}

        fixed_clock.now += timedelta(minutes=31)
        assert cache.get("k") is None
        assert cache.has_expired("k") is True

    def test_set_overwrites_existing_entry(
        self, session_factory, db_session, fixed_clock
    ):
        cache = DatabaseCache(session_factory, clock=fixed_clock)
        cache.set("k", {"v": 1}, timedelta(minutes=1))
        cache.set("k", {"v": 2}, timedelta(minutes=1))

        assert cache.get("k") == {"v": 2}
        assert db_session.query(NasaCacheEntry).count() == 1

    def test_build_cache_selects_backend(self, session_factory):
        assert isinstance(build_cache("memory"), MemoryCache)
        assert isinstance(build_cache("database", session_factory), DatabaseCache)
