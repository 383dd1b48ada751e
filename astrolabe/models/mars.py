"""Mars rover photo records."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import BigInteger, Date, DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from astrolabe.database import Base


class MarsImage(Base):
    """Rover photo metadata, written once and never updated."""

    __tablename__ = "mars_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    nasa_id: Mapped[int] = mapped_column(BigInteger, unique=True, index=True)
    rover: Mapped[str] = mapped_column(String(32), index=True)
    sol: Mapped[int] = mapped_column(Integer, index=True)
    camera: Mapped[str] = mapped_column(String(50), index=True)
    img_src: Mapped[str] = mapped_column(String(512))
    earth_date: Mapped[date] = mapped_column(Date, index=True)
    # Reserved for label enrichment; always NULL on ingest
    labels: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
