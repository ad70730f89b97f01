"""Prometheus counters and tracing for the delivery worker."""

from __future__ import annotations

from opentelemetry import trace
from prometheus_client import Counter, Histogram, start_http_server

from apps.api.app.core.config import Settings, get_settings
from apps.api.app.domain.deliveries import DeliveryResult
from apps.api.app.telemetry import build_tracer_provider

DELIVERY_COUNTER = Counter(
    "newsletter_deliveries_total",
    "Delivery attempts grouped by how the queue row was resolved",
    labelnames=("result",),
)
DELIVERY_LATENCY = Histogram(
    "newsletter_delivery_duration_seconds",
    "Duration of email sender calls",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)

tracer = trace.get_tracer("apps.workers.delivery")

_configured = False


def configure_worker_telemetry(settings: Settings | None = None) -> None:
    """Start the metrics exporter and tracer provider once per process."""

    global _configured
    if _configured:
        return

    settings = settings or get_settings()
    if settings.worker_prometheus_port is not None:
        start_http_server(
            port=settings.worker_prometheus_port,
            addr=settings.worker_prometheus_host,
        )
    build_tracer_provider(settings, "newsletter-delivery-worker")
    _configured = True


def record_delivery(result: DeliveryResult, duration: float | None = None) -> None:
    DELIVERY_COUNTER.labels(result=result.value).inc()
    if duration is not None:
        DELIVERY_LATENCY.observe(max(0.0, duration))
