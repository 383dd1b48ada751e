"""Application settings."""

from __future__ import annotations

import json
from functools import cached_property
from typing import Annotated, Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the API, the ingestion jobs and the CLI."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True

    # Server
    allowed_origins: Annotated[list[str], NoDecode] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # Observability
    log_level: str = "INFO"
    enable_tracing: bool = False
    otlp_endpoint: str | None = None
    otlp_headers: str | None = None

    # Metrics endpoint authentication
    metrics_username: str = "prometheus"
    metrics_password: str | None = None

    # Database
    database_url: str = Field(
        default="sqlite:///./data/astrolabe.db",
        validation_alias=AliasChoices("DATABASE_URL"),
    )
    db_echo: bool = Field(
        default=False,
        validation_alias=AliasChoices("DB_ECHO", "SQL_ECHO"),
    )

    # NASA API
    nasa_api_key: str | None = None  # DEMO_KEY works for low traffic
    nasa_base_url: str = "https://api.nasa.gov"
    nasa_timeout_seconds: float = 15.0
    nasa_max_attempts: int = 3
    nasa_retry_delay_seconds: float = 0.2

    # Upstream response cache
    cache_backend: Literal["memory", "database"] = "database"
    apod_cache_ttl_minutes: int = 1440
    neows_cache_ttl_minutes: int = 60
    mars_photos_cache_ttl_minutes: int = 720
    mars_manifest_cache_ttl_minutes: int = 30

    # Ingestion
    tracked_rovers: Annotated[list[str], NoDecode] = ["curiosity", "perseverance"]
    mars_max_pages: int = 50
    neows_window_days: int = 7
    job_lock_ttl_seconds: int = 900
    job_max_attempts: int = 3
    job_retry_delay_seconds: float = 300.0

    # Read API
    api_default_page_size: int = 15
    api_max_page_size: int = 100

    @field_validator("allowed_origins", "tracked_rovers", mode="before")
    @classmethod
    def parse_list(cls, value: str | list[str] | None) -> list[str]:
        """Normalize comma separated or JSON list env input into a list."""
        if isinstance(value, list):
            return value
        if isinstance(value, str):
            raw = value.strip()
            if not raw:
                return []
            if raw.startswith("["):
                try:
                    parsed = json.loads(raw)
                    if isinstance(parsed, list):
                        return parsed
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in raw.split(",") if item.strip()]
        return []

    @property
    def is_production(self) -> bool:
        """Return True when running in production."""
        return self.environment == "production"

    @property
    def cors_origins(self) -> list[str]:
        """Expose allowed CORS origins for middleware wiring."""
        return self.allowed_origins

    @property
    def resolved_nasa_api_key(self) -> str:
        return self.nasa_api_key or "DEMO_KEY"

    @cached_property
    def resolved_database_url(self) -> str:
        """Return the primary sync SQLAlchemy URL.

        Bare ``postgres://`` and ``postgresql://`` URLs are pointed at the
        psycopg 3 driver.
        """
        url = self.database_url
        for prefix in ("postgres://", "postgresql://"):
            if url.startswith(prefix):
                return "postgresql+psycopg://" + url.removeprefix(prefix)
        return url


settings = Settings()
