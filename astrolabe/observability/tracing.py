from __future__ import annotations

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

_configured = False


def _parse_headers(raw: str | None) -> dict[str, str] | None:
    if not raw:
        return None
    header_pairs = [item.strip() for item in raw.split(",") if item.strip()]
    result: dict[str, str] = {}
    for pair in header_pairs:
        if "=" not in pair:
            continue
        key, value = pair.split("=", 1)
        result[key.strip()] = value.strip()
    return result or None


def configure_tracing(
    service_name: str,
    endpoint: str | None,
    headers: str | None = None,
    *,
    app=None,
    engine=None,
) -> bool:
    """Export spans over OTLP/HTTP.

    The API process passes ``app`` so request spans are recorded; job runs
    from the CLI only instrument outbound NASA calls and the database.
    Returns False when tracing was already configured or has no endpoint.
    """
    global _configured
    if _configured or not endpoint:
        return False

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(endpoint=endpoint, headers=_parse_headers(headers))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)

    if app is not None:
        FastAPIInstrumentor.instrument_app(app)
    if engine is not None:
        SQLAlchemyInstrumentor().instrument(engine=engine)
    HTTPXClientInstrumentor().instrument()
    _configured = True
    return True
