"""Structured logging and Prometheus metrics.

Tracing lives in ``astrolabe.observability.tracing`` and is imported only
when enabled.
"""

from __future__ import annotations

from astrolabe.observability.logging import configure_logging
from astrolabe.observability.metrics import (
    INGESTED_RECORDS,
    JOB_RUNS,
    UPSTREAM_REQUESTS,
    MetricsMiddleware,
    metrics_response,
)

__all__ = [
    "INGESTED_RECORDS",
    "JOB_RUNS",
    "UPSTREAM_REQUESTS",
    "MetricsMiddleware",
    "configure_logging",
    "metrics_response",
]
