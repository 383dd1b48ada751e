"""Tests for the read API endpoints and the response envelope."""

from __future__ import annotations

import json
from datetime import date
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from astrolabe.models.apod import ApodMood
from astrolabe.models.mars import MarsImage
from astrolabe.models.neo import NeowsObject
from astrolabe.services.cache import utcnow
from astrolabe.services.mood import PLACEHOLDER_PALETTE


def add_apod(db, day: date, title: str = "Pillars of Creation", mood: str = "awe"):
    db.add(
        ApodMood(
            apod_date=day,
            nasa_id=day.isoformat(),
            title=title,
            url="https://apod.nasa.gov/apod/image/pillars.jpg",
            media_type="image",
            mood=mood,
            mood_score=0.85,
            color_palette=json.dumps(list(PLACEHOLDER_PALETTE)),
            ai_summary="Columns of cold gas.",
        )
    )
    db.commit()


def add_neo(db, neo_id: str, day: date, km: float):
    db.add(
        NeowsObject(
            neo_id=neo_id,
            name=f"({neo_id})",
            estimated_diameter=json.dumps({"meters": {"estimated_diameter_max": 30}}),
            is_potentially_hazardous=False,
            close_approach=json.dumps({"close_approach_date": day.isoformat()}),
            orbit_data=json.dumps({"orbit_id": "3"}),
            close_approach_date=day,
            miss_distance_km=km,
        )
    )
    db.commit()


def add_photo(db, nasa_id: int, rover: str, earth_date: date, sol: int = 10):
    db.add(
        MarsImage(
            nasa_id=nasa_id,
            rover=rover,
            sol=sol,
            camera="FHAZ",
            img_src=f"https://mars.nasa.gov/{nasa_id}.jpg",
            earth_date=earth_date,
        )
    )
    db.commit()


# ── /mood ───────────────────────────────────────────────────────


class TestMood:
    def test_today_matches_current_utc_date(self, client: TestClient, db_session):
        today = utcnow().date()
        add_apod(db_session, today, title="Today's sky")

        response = client.get("/mood/today")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["data"]["title"] == "Today's sky"
        assert body["data"]["apod_date"] == today.isoformat()

    def test_by_date_decodes_palette(self, client: TestClient, db_session):
        add_apod(db_session, date(2024, 6, 1))

        response = client.get("/mood/2024-06-01")

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["mood"] == "awe"
        assert data["color_palette"] == list(PLACEHOLDER_PALETTE)

    def test_missing_date_is_404(self, client: TestClient, db_session):
        response = client.get("/mood/1999-01-01")

        assert response.status_code == 404
        assert response.json() == {
            "status": "error",
            "message": "APOD data not found for the specified date.",
        }

    @pytest.mark.parametrize("value", ["2024-13-01", "06-01-2024", "yesterday"])
    def test_bad_format_is_422(self, client: TestClient, db_session, value):
        response = client.get(f"/mood/{value}")

        assert response.status_code == 422
        body = response.json()
        assert body["status"] == "error"
        assert "date" in body["meta"]["errors"]


# ── /capsule ────────────────────────────────────────────────────


class TestCapsule:
    def test_wraps_apod_record(self, client: TestClient, db_session):
        add_apod(db_session, date(1990, 4, 24), title="Hubble launch day")

        response = client.get("/capsule/birthday", params={"date": "1990-04-24"})

        assert response.status_code == 200
        assert response.json()["data"]["apod"]["title"] == "Hubble launch day"

    def test_not_processed_is_404(self, client: TestClient, db_session):
        response = client.get("/capsule/birthday", params={"date": "1990-04-24"})

        assert response.status_code == 404
        assert response.json()["message"].startswith("Capsule data not found")

    def test_date_is_required(self, client: TestClient, db_session):
        response = client.get("/capsule/birthday")

        assert response.status_code == 422
        assert response.json()["message"] == "The given data was invalid."
        assert "date" in response.json()["meta"]["errors"]


# ── /impact ─────────────────────────────────────────────────────


class TestImpactNearby:
    def test_window_filter_and_distance_order(self, client: TestClient, db_session):
        add_neo(db_session, "far", date(2024, 6, 1), 9_000_000)
        add_neo(db_session, "near", date(2024, 6, 2), 120_000)
        add_neo(db_session, "outside", date(2024, 6, 9), 10)

        response = client.get(
            "/impact/nearby",
            params={"date_from": "2024-06-01", "date_to": "2024-06-03"},
        )

        assert response.status_code == 200
        body = response.json()
        assert [item["neo_id"] for item in body["data"]] == ["near", "far"]
        assert body["data"][0]["estimated_diameter"]["meters"]
        assert body["meta"] == {"page": 1, "per_page": 15, "total": 2, "last_page": 1}

    def test_date_to_defaults_to_date_from(self, client: TestClient, db_session):
        add_neo(db_session, "same-day", date(2024, 6, 1), 1)
        add_neo(db_session, "next-day", date(2024, 6, 2), 1)

        response = client.get("/impact/nearby", params={"date_from": "2024-06-01"})

        assert [item["neo_id"] for item in response.json()["data"]] == ["same-day"]

    def test_date_to_before_date_from_is_422(self, client: TestClient, db_session):
        response = client.get(
            "/impact/nearby",
            params={"date_from": "2025-01-01", "date_to": "2024-01-01"},
        )

        assert response.status_code == 422
        assert response.json()["meta"]["errors"]["date_to"] == [
            "must be a date after or equal to date_from"
        ]

    def test_pagination(self, client: TestClient, db_session):
        add_neo(db_session, "a", date(2024, 6, 1), 1)
        add_neo(db_session, "b", date(2024, 6, 1), 2)
        add_neo(db_session, "c", date(2024, 6, 1), 3)

        response = client.get(
            "/impact/nearby",
            params={"date_from": "2024-06-01", "limit": 2, "page": 2},
        )

        body = response.json()
        assert [item["neo_id"] for item in body["data"]] == ["c"]
        assert body["meta"] == {"page": 2, "per_page": 2, "total": 3, "last_page": 2}

    def test_internal_error_is_generic_500(self, client: TestClient, db_session):
        with patch(
            "astrolabe.routers.impact.paginate",
            side_effect=RuntimeError("no such column: secret_detail"),
        ):
            response = client.get("/impact/nearby", params={"date_from": "2024-06-01"})

        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "error"
        assert "secret_detail" not in body["message"]


# ── /mars ───────────────────────────────────────────────────────


class TestMarsPhotos:
    def test_filters_and_newest_first(self, client: TestClient, db_session):
        add_photo(db_session, 1, "curiosity", date(2024, 1, 1))
        add_photo(db_session, 2, "curiosity", date(2024, 2, 1))
        add_photo(db_session, 3, "perseverance", date(2024, 3, 1))

        response = client.get(
            "/mars/photos", params={"rover": "curiosity", "camera": "fhaz"}
        )

        assert response.status_code == 200
        body = response.json()
        assert [item["nasa_id"] for item in body["data"]] == [2, 1]
        assert body["meta"]["per_page"] == 25

    def test_sol_filter(self, client: TestClient, db_session):
        add_photo(db_session, 1, "curiosity", date(2024, 1, 1), sol=10)
        add_photo(db_session, 2, "curiosity", date(2024, 1, 2), sol=11)

        response = client.get("/mars/photos", params={"sol": 11})

        assert [item["nasa_id"] for item in response.json()["data"]] == [2]

    def test_limit_above_maximum_is_422(self, client: TestClient, db_session):
        response = client.get("/mars/photos", params={"limit": 500})

        assert response.status_code == 422
        assert "limit" in response.json()["meta"]["errors"]

    def test_unknown_rover_is_422(self, client: TestClient, db_session):
        response = client.get("/mars/photos", params={"rover": "sojourner"})

        assert response.status_code == 422
        assert "rover" in response.json()["meta"]["errors"]


# ── System ──────────────────────────────────────────────────────


class TestSystem:
    def test_healthz(self, client: TestClient):
        response = client.get("/healthz")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_readyz(self, client: TestClient):
        response = client.get("/readyz")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_unknown_route_uses_envelope(self, client: TestClient):
        response = client.get("/does-not-exist")
        assert response.status_code == 404
        assert response.json()["status"] == "error"

    def test_metrics_exposed(self, client: TestClient):
        client.get("/healthz")
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "astrolabe_request_total" in response.text

    def test_request_id_is_echoed(self, client: TestClient):
        request_id = "4f1c2d3e4a5b4c6d8e9f0a1b2c3d4e5f"
        response = client.get("/healthz", headers={"X-Request-ID": request_id})
        assert response.headers["X-Request-ID"] == request_id
