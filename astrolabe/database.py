"""Synchronous SQLAlchemy session helpers."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from astrolabe.config import settings


class Base(DeclarativeBase):
    """Declarative base class for ORM models."""


_database_url = settings.resolved_database_url
engine_kwargs: dict[str, object] = {
    "echo": settings.db_echo,
    "pool_pre_ping": True,
}
if _database_url.startswith("sqlite"):
    engine_kwargs["connect_args"] = {"check_same_thread": False}
    if _database_url.startswith("sqlite:///./"):
        Path(_database_url.removeprefix("sqlite:///")).parent.mkdir(
            parents=True, exist_ok=True
        )

engine: Engine = create_engine(_database_url, **engine_kwargs)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def dialect_insert(db: Session):
    """Return the dialect ``insert`` construct that supports ON CONFLICT."""
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


def get_db() -> Iterator[Session]:
    """Yield a scoped session for dependency injection."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
