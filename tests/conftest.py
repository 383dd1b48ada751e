"""Test fixtures for the API, the database and the NASA client."""

from __future__ import annotations

import os
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

TESTS_ROOT = Path(__file__).parent

# Set DATABASE_URL *before* importing astrolabe modules so the app doesn't try
# to create the default ./data database.
os.environ.setdefault("DATABASE_URL", "sqlite:///test_astrolabe.db")
os.environ.setdefault("NASA_API_KEY", "test-key")
os.environ.setdefault("CACHE_BACKEND", "memory")

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from astrolabe.database import Base  # noqa: E402
from astrolabe.database import get_db as db_dependency  # noqa: E402
from astrolabe.main import app  # noqa: E402
from astrolabe.models import apod, mars, neo, ops  # noqa: E402,F401
from astrolabe.security.rate_limit import limiter  # noqa: E402
from astrolabe.services.cache import MemoryCache  # noqa: E402
from astrolabe.services.nasa_client import NASAClient  # noqa: E402

# Disable rate limiting in tests to prevent cross-test 429 flakes
limiter.enabled = False

TEST_DB_PATH = Path("test_astrolabe.db")
TESTING_SESSION_FACTORY: sessionmaker | None = None

NASA_TEST_URL = "https://nasa.test"


@pytest.fixture(scope="session")
def client():
    global TESTING_SESSION_FACTORY
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()

    engine = create_engine(
        f"sqlite:///{TEST_DB_PATH}",
        connect_args={"check_same_thread": False},
    )
    TESTING_SESSION_FACTORY = sessionmaker(
        bind=engine, autocommit=False, autoflush=False
    )
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TESTING_SESSION_FACTORY()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[db_dependency] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(db_dependency, None)
    engine.dispose()
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()


@pytest.fixture
def session_factory(client):
    if TESTING_SESSION_FACTORY is None:
        raise RuntimeError("Session factory not initialized")
    yield TESTING_SESSION_FACTORY
    # Ensure database state is isolated between tests
    with TESTING_SESSION_FACTORY() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


class FixedClock:
    """Callable clock; tests move it by assigning ``now``."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def fixed_clock() -> FixedClock:
    return FixedClock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def nasa_client():
    """Build a ``NASAClient`` whose HTTP traffic goes to ``handler``."""

    def factory(
        handler: Callable[[httpx.Request], httpx.Response],
        cache=None,
        max_attempts: int = 3,
    ) -> NASAClient:
        return NASAClient(
            cache if cache is not None else MemoryCache(),
            api_key="test-key",
            base_url=NASA_TEST_URL,
            max_attempts=max_attempts,
            retry_delay=0,
            transport=httpx.MockTransport(handler),
            sleep=AsyncMock(),
        )

    return factory


# ── Upstream payloads ───────────────────────────────────────────


@pytest.fixture
def apod_payload():
    def build(**overrides):
        payload = {
            "date": "2024-06-01",
            "title": "The Horsehead Nebula",
            "explanation": "A serene cloud of gas and dust in Orion.",
            "url": "https://apod.nasa.gov/apod/image/2406/horsehead.jpg",
            "hdurl": "https://apod.nasa.gov/apod/image/2406/horsehead_hd.jpg",
            "media_type": "image",
            "service_version": "v1",
        }
        payload.update(overrides)
        return payload

    return build


@pytest.fixture
def neo_payload():
    def build(neo_id: str, approach_date: str = "2024-06-01", km: str = "1000.5"):
        return {
            "id": neo_id,
            "neo_reference_id": neo_id,
            "name": f"({neo_id})",
            "estimated_diameter": {
                "meters": {
                    "estimated_diameter_min": 10.0,
                    "estimated_diameter_max": 25.0,
                }
            },
            "is_potentially_hazardous_asteroid": False,
            "close_approach_data": [
                {
                    "close_approach_date": approach_date,
                    "miss_distance": {"kilometers": km},
                    "orbiting_body": "Earth",
                }
            ],
            "orbital_data": {"orbit_id": "12"},
        }

    return build


@pytest.fixture
def mars_photo_payload():
    def build(photo_id: int, rover: str = "Curiosity", sol: int = 4100):
        return {
            "id": photo_id,
            "sol": sol,
            "camera": {"id": 20, "name": "FHAZ", "full_name": "Front Hazard Camera"},
            "img_src": f"https://mars.nasa.gov/msl-raw-images/{photo_id}.jpg",
            "earth_date": "2024-01-15",
            "rover": {"id": 5, "name": rover, "status": "active"},
        }

    return build
