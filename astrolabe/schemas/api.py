"""Pydantic schemas for the read API: query parameters and records."""

from __future__ import annotations

import datetime as dt
import json
import re
from typing import Annotated, Any, Literal, get_args

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
)

from astrolabe.config import settings

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

RoverName = Literal["curiosity", "opportunity", "spirit", "perseverance"]
ROVERS: tuple[str, ...] = get_args(RoverName)


def parse_iso_date(value: Any) -> dt.date:
    """Accept ``date`` objects or strict ``YYYY-MM-DD`` strings."""
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return value
    if not isinstance(value, str) or not _ISO_DATE.match(value):
        raise ValueError("must be a date in YYYY-MM-DD format")
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError("must be a valid calendar date") from exc


IsoDate = Annotated[dt.date, BeforeValidator(parse_iso_date)]
PageSize = Annotated[int, Field(ge=1, le=settings.api_max_page_size)]


def _decode_json(value: Any) -> Any:
    if isinstance(value, str):
        return json.loads(value) if value else None
    return value


# ── Query parameters ────────────────────────────────────────────


class _Query(BaseModel):
    model_config = ConfigDict(extra="ignore")


class CapsuleQuery(_Query):
    date: IsoDate


class NearbyQuery(_Query):
    date_from: IsoDate
    date_to: IsoDate | None = None
    limit: PageSize = settings.api_default_page_size
    page: int = Field(default=1, ge=1)

    @field_validator("date_to")
    @classmethod
    def after_or_equal_date_from(
        cls, value: dt.date | None, info: ValidationInfo
    ) -> dt.date | None:
        date_from = info.data.get("date_from")
        if value is not None and date_from is not None and value < date_from:
            raise ValueError("must be a date after or equal to date_from")
        return value

    @property
    def window(self) -> tuple[dt.date, dt.date]:
        return self.date_from, self.date_to or self.date_from


class MarsPhotosQuery(_Query):
    rover: RoverName | None = None
    camera: str | None = Field(default=None, min_length=1, max_length=50)
    sol: int | None = Field(default=None, ge=0)
    limit: PageSize = 25
    page: int = Field(default=1, ge=1)


# ── Records ─────────────────────────────────────────────────────


class ApodMoodOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    apod_date: dt.date
    nasa_id: str | None = None
    title: str
    url: str
    media_type: str = "image"
    mood: str | None = None
    mood_score: float | None = None
    color_palette: list[str] | None = None
    ai_summary: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @field_validator("color_palette", mode="before")
    @classmethod
    def decode_palette(cls, value: Any) -> Any:
        return _decode_json(value)


class NeowsObjectOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    neo_id: str
    name: str
    estimated_diameter: dict[str, Any] | None = None
    is_potentially_hazardous: bool
    close_approach: dict[str, Any] | None = None
    orbit_data: dict[str, Any] | None = None
    close_approach_date: dt.date | None = None
    miss_distance_km: float | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    @field_validator(
        "estimated_diameter", "close_approach", "orbit_data", mode="before"
    )
    @classmethod
    def decode_json_columns(cls, value: Any) -> Any:
        return _decode_json(value)


class MarsPhotoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    nasa_id: int
    rover: str
    sol: int
    camera: str
    img_src: str
    earth_date: dt.date
    labels: list[str] | None = None

    @field_validator("labels", mode="before")
    @classmethod
    def decode_labels(cls, value: Any) -> Any:
        return _decode_json(value)


class PageMeta(BaseModel):
    page: int
    per_page: int
    total: int
    last_page: int
