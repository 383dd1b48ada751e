"""
FastAPI Application - NASA data read API
"""

from __future__ import annotations

import logging
import secrets
from contextlib import asynccontextmanager

from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy import inspect, text
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from astrolabe.config import settings
from astrolabe.database import Base, engine, get_db
from astrolabe.models import apod, mars, neo, ops  # noqa: F401 - needed for metadata
from astrolabe.observability import (
    MetricsMiddleware,
    configure_logging,
    metrics_response,
)
from astrolabe.responses import (
    INVALID_DATA_MESSAGE,
    ApiError,
    api_error_response,
    error_response,
    field_errors,
    server_error_response,
)
from astrolabe.routers.capsule import router as capsule_router
from astrolabe.routers.impact import router as impact_router
from astrolabe.routers.mars import router as mars_router
from astrolabe.routers.mood import router as mood_router
from astrolabe.security import limiter

logger = logging.getLogger(__name__)


# ==========================================
# Database Initialization
# ==========================================
def init_database() -> None:
    Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s (%s)", app.title, settings.environment)
    init_database()
    yield
    logger.info("Shutting down %s", app.title)


configure_logging(settings.log_level.upper())


# ==========================================
# Exception handlers (define BEFORE registration)
# ==========================================
async def api_error_handler(request: Request, exc: ApiError):
    return api_error_response(exc)


async def request_validation_handler(request: Request, exc: RequestValidationError):
    return error_response(
        INVALID_DATA_MESSAGE,
        422,
        meta={"errors": field_errors(list(exc.errors()))},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed."
    if exc.status_code == status.HTTP_404_NOT_FOUND and message == "Not Found":
        message = "The requested resource was not found."
    return error_response(
        message, exc.status_code, headers=getattr(exc, "headers", None)
    )


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return error_response(
        "Rate limit exceeded. Please retry shortly.",
        status.HTTP_429_TOO_MANY_REQUESTS,
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled error on %s %s", request.method, request.url.path
    )
    return server_error_response()


# ==========================================
# FastAPI Application
# ==========================================
app = FastAPI(
    title="Astrolabe",
    description="Read API over ingested NASA APOD, NeoWs and Mars rover data",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)
# Order: compression → rate-limit/metrics → correlation id
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(MetricsMiddleware)
app.add_middleware(CorrelationIdMiddleware, header_name="X-Request-ID")
app.state.limiter = limiter
app.add_exception_handler(ApiError, api_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)
# CORS: strict allowlist
if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=False,
        allow_methods=["GET"],
        allow_headers=["Accept", "Content-Type", "X-Request-ID"],
    )
# Optional tracing
if settings.enable_tracing and settings.otlp_endpoint:
    from astrolabe.observability.tracing import configure_tracing

    configure_tracing(
        "astrolabe-api",
        settings.otlp_endpoint,
        settings.otlp_headers,
        app=app,
        engine=engine,
    )


# ==========================================
# Health & readiness (minimal in prod)
# ==========================================
@app.get("/healthz", tags=["system"], summary="Health check", response_model=dict)
def health_check(db: Session = Depends(get_db)) -> dict:
    try:
        db.execute(text("SELECT 1"))
    except Exception:
        logger.exception("Health check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="unhealthy"
        )
    if settings.is_production:
        return {"status": "healthy"}
    return {"status": "healthy", "database": "connected", "version": app.version}


@app.get("/readyz", tags=["system"], summary="Readiness check", response_model=dict)
def readiness_check(db: Session = Depends(get_db)) -> dict:
    try:
        db.execute(text("SELECT 1"))
        inspector = inspect(db.get_bind())
        missing = [
            table
            for table in Base.metadata.tables
            if not inspector.has_table(table)
        ]
        if missing:
            raise RuntimeError(f"Tables missing: {', '.join(sorted(missing))}")
    except Exception as exc:
        logger.warning("Readiness check failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="not ready"
        )
    if settings.is_production:
        return {"status": "ready"}
    return {"status": "ready", "database": "connected", "schema": "current"}


# ==========================================
# Metrics (Protected with HTTP Basic Auth)
# ==========================================
security = HTTPBasic(auto_error=False)


def verify_metrics_auth(
    credentials: HTTPBasicCredentials | None = Depends(security),
) -> str | None:
    """Require HTTP Basic credentials when ``METRICS_PASSWORD`` is set."""
    if not settings.metrics_password:
        return credentials.username if credentials else None

    authorized = credentials is not None and (
        secrets.compare_digest(credentials.username, settings.metrics_username)
        & secrets.compare_digest(credentials.password, settings.metrics_password)
    )
    if not authorized:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return credentials.username


@app.get("/metrics", include_in_schema=False)
def metrics(_: str | None = Depends(verify_metrics_auth)):
    """Prometheus metrics endpoint."""
    return metrics_response()


# ==========================================
# Routers
# ==========================================
app.include_router(mood_router)
app.include_router(capsule_router)
app.include_router(impact_router)
app.include_router(mars_router)
