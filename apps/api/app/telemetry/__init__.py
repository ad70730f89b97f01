"""Prometheus metrics and OpenTelemetry tracing shared by the API and the worker."""

from __future__ import annotations

import re
import time
from typing import Dict

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..core.config import Settings, get_settings

SERVICE_VERSION = "0.1.0"

REQUEST_COUNT = Counter(
    "newsletter_http_requests_total",
    "Total count of HTTP requests",
    labelnames=("method", "path", "status"),
)
REQUEST_LATENCY = Histogram(
    "newsletter_http_request_duration_seconds",
    "Latency distribution for HTTP requests",
    labelnames=("method", "path"),
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10),
)
PUBLISH_COUNT = Counter(
    "newsletter_publish_requests_total",
    "Publish requests grouped by whether they created an issue or replayed one",
    labelnames=("outcome",),
)

_uuid_pattern = re.compile(r"/[0-9a-fA-F-]{32,36}")
_numeric_pattern = re.compile(r"/\d+")
_tracer_provider: TracerProvider | None = None


class PrometheusMiddleware(BaseHTTPMiddleware):
    """Record request metrics for Prometheus scraping."""

    def __init__(self, app, metrics_path: str) -> None:  # type: ignore[no-untyped-def]
        super().__init__(app)
        self._metrics_path = metrics_path

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start
        if request.url.path == self._metrics_path:
            return response
        path = normalise_path(request.url.path)
        REQUEST_COUNT.labels(
            method=request.method, path=path, status=str(response.status_code)
        ).inc()
        REQUEST_LATENCY.labels(method=request.method, path=path).observe(duration)
        return response


def setup_prometheus(app: FastAPI) -> None:
    """Attach middleware and metrics endpoint."""

    metrics_path = get_settings().prometheus_metrics_path
    app.add_middleware(PrometheusMiddleware, metrics_path=metrics_path)

    @app.get(metrics_path, include_in_schema=False)
    async def prometheus_metrics() -> Response:  # pragma: no cover - trivial
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def build_tracer_provider(settings: Settings, default_service_name: str) -> TracerProvider | None:
    """Install a global OTLP tracer provider once; ``None`` when no endpoint is set."""

    global _tracer_provider
    if not settings.otel_exporter_otlp_endpoint:
        return None
    if _tracer_provider is not None:
        return _tracer_provider

    resource = Resource.create(
        {
            "service.name": settings.otel_service_name or default_service_name,
            "service.namespace": "newsletter",
            "service.version": SERVICE_VERSION,
        }
    )
    provider = TracerProvider(resource=resource)
    exporter = OTLPSpanExporter(
        endpoint=settings.otel_exporter_otlp_endpoint,
        headers=parse_otlp_headers(settings.otel_exporter_otlp_headers),
    )
    provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(provider)
    _tracer_provider = provider
    return provider


def configure_tracing(app: FastAPI) -> None:
    """Instrument the app when an OTLP endpoint is configured."""

    settings = get_settings()
    provider = build_tracer_provider(settings, settings.project_name)
    if provider is None:
        return
    FastAPIInstrumentor.instrument_app(app, tracer_provider=provider)


def normalise_path(path: str) -> str:
    path = _uuid_pattern.sub("/{uuid}", path)
    path = _numeric_pattern.sub("/{id}", path)
    if not path:
        return "/"
    return path


def parse_otlp_headers(raw: str | None) -> Dict[str, str]:
    if not raw:
        return {}
    headers: Dict[str, str] = {}
    for part in raw.split(","):
        if not part or "=" not in part:
            continue
        key, value = part.split("=", 1)
        headers[key.strip()] = value.strip()
    return headers
