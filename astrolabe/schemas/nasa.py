"""Shape-checked decode structs for NASA API payloads.

Each model lists the fields an ingestion job needs. Anything missing or of
the wrong type raises ``pydantic.ValidationError``, which the jobs treat as
"no data yet" rather than as a failure. Unknown fields are ignored.
"""

from __future__ import annotations

import datetime as dt
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


# ── APOD ────────────────────────────────────────────────────────


class ApodPayload(_Payload):
    """``/planetary/apod`` response."""

    media_type: str
    date: dt.date
    title: str
    url: str
    hdurl: str | None = None
    explanation: str = ""

    @property
    def best_url(self) -> str:
        return self.hdurl or self.url


# ── NeoWs ───────────────────────────────────────────────────────


class MissDistance(_Payload):
    kilometers: float | None = None


class CloseApproachPayload(_Payload):
    """The parts of a close-approach entry stored as their own columns."""

    close_approach_date: dt.date | None = None
    miss_distance: MissDistance | None = None

    @property
    def miss_distance_km(self) -> float | None:
        return self.miss_distance.kilometers if self.miss_distance else None


class NeoPayload(_Payload):
    """One object inside the NeoWs feed."""

    id: str
    neo_reference_id: str | None = None
    name: str
    estimated_diameter: dict[str, Any]
    is_potentially_hazardous_asteroid: bool
    close_approach_data: list[dict[str, Any]] = Field(default_factory=list)
    orbital_data: dict[str, Any] = Field(default_factory=dict)

    @property
    def natural_key(self) -> str:
        return self.neo_reference_id or self.id

    @property
    def first_approach(self) -> dict[str, Any] | None:
        return self.close_approach_data[0] if self.close_approach_data else None


class NeoFeedPayload(_Payload):
    """``/neo/rest/v1/feed`` response, objects grouped by approach date.

    Objects are decoded one by one with ``NeoPayload`` so a single malformed
    entry does not discard the whole feed.
    """

    element_count: int = 0
    near_earth_objects: dict[str, list[Any]]


# ── Mars Rover Photos ───────────────────────────────────────────


class CameraPayload(_Payload):
    name: str
    full_name: str = ""


class RoverPayload(_Payload):
    name: str


class MarsPhotoPayload(_Payload):
    """One photo from ``/mars-photos/api/v1/rovers/{rover}/photos``."""

    id: int
    sol: int
    camera: CameraPayload
    img_src: str
    earth_date: dt.date
    rover: RoverPayload | None = None


class MarsPhotosPayload(_Payload):
    photos: list[MarsPhotoPayload]


class PhotoManifest(_Payload):
    name: str = ""
    max_sol: int
    max_date: dt.date | None = None
    total_photos: int = 0


class ManifestPayload(_Payload):
    """``/mars-photos/api/v1/manifests/{rover}`` response."""

    photo_manifest: PhotoManifest
