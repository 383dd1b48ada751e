"""Astronomy Picture of the Day mood records."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Date, DateTime, Float, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from astrolabe.database import Base


class ApodMood(Base):
    """One classified picture per calendar date.

    Re-ingesting a date overwrites every column except ``apod_date`` and
    ``created_at``.
    """

    __tablename__ = "apod_mood"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    apod_date: Mapped[date] = mapped_column(Date, unique=True, index=True)
    nasa_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    title: Mapped[str] = mapped_column(String(255))
    url: Mapped[str] = mapped_column(String(512))
    media_type: Mapped[str] = mapped_column(String(32), default="image")
    mood: Mapped[str | None] = mapped_column(String(64), nullable=True)
    mood_score: Mapped[float | None] = mapped_column(Float, nullable=True)
    color_palette: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON
    ai_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )
