"""Near-Earth object records from the NeoWs feed."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from astrolabe.database import Base


class NeowsObject(Base):
    """A near-Earth object keyed by its NeoWs reference id.

    ``estimated_diameter``, ``close_approach`` and ``orbit_data`` hold the
    upstream structures as JSON text. ``close_approach_date`` and
    ``miss_distance_km`` are copied out of ``close_approach`` so the read
    API can filter and order without JSON functions.
    """

    __tablename__ = "neows_objects"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    neo_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    estimated_diameter: Mapped[str] = mapped_column(Text)  # JSON
    is_potentially_hazardous: Mapped[bool] = mapped_column(Boolean, default=False)
    close_approach: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON
    orbit_data: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON
    close_approach_date: Mapped[date | None] = mapped_column(
        Date, nullable=True, index=True
    )
    miss_distance_km: Mapped[float | None] = mapped_column(Float, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
