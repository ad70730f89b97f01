from functools import lru_cache
from secrets import token_urlsafe
from typing import List

from pydantic import AnyHttpUrl, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    api_v1_prefix: str = "/v1"
    project_name: str = "Newsletter Delivery API"
    cors_origins: List[AnyHttpUrl] = []
    secret_key: str = Field(default_factory=lambda: token_urlsafe(32))
    access_token_expire_minutes: int = 60

    database_url: str | None = Field(
        default=None,
        description="SQLAlchemy async connection string for the primary Postgres database",
    )
    sql_echo: bool = Field(default=False, description="Echo emitted SQL statements")

    log_level: str = Field(default="INFO", description="Root log level for API and workers")
    log_json: bool = Field(
        default=False,
        description="Render structured logs as JSON instead of the console format",
    )

    email_base_url: AnyHttpUrl | None = Field(
        default=None,
        description="Base URL of the transactional email API used for deliveries",
    )
    email_sender: str | None = Field(
        default=None,
        description="Address newsletter issues are sent from",
    )
    email_authorization_token: str | None = Field(
        default=None,
        description="Server token sent in the X-Postmark-Server-Token header",
    )
    email_client_timeout_milliseconds: int = Field(default=10_000, ge=1)

    delivery_max_retries: int = Field(
        default=3,
        ge=1,
        description="Failed attempts after which a delivery is abandoned",
    )
    delivery_retry_backoff_seconds: float = Field(
        default=30.0,
        ge=0,
        description="Delay before the first retry of a failed delivery; doubles per attempt",
    )
    delivery_retry_backoff_max_seconds: float = Field(
        default=3600.0,
        ge=0,
        description="Upper bound for the delay between delivery retries",
    )
    delivery_poll_interval_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Sleep between polls when the delivery queue is empty",
    )
    delivery_error_backoff_seconds: float = Field(
        default=1.0,
        ge=0,
        description="Sleep after an unexpected error in a worker cycle",
    )

    idempotency_wait_timeout_seconds: float = Field(
        default=5.0,
        ge=0,
        description="How long a duplicate request waits for an in-flight response",
    )
    idempotency_poll_interval_seconds: float = Field(default=0.05, gt=0)

    enable_prometheus_metrics: bool = Field(
        default=True, description="Expose Prometheus metrics endpoint when true"
    )
    prometheus_metrics_path: str = Field(
        default="/metrics/prometheus",
        description="Path where scraped Prometheus metrics are served",
    )
    otel_exporter_otlp_endpoint: str | None = Field(
        default=None,
        description="OTLP HTTP endpoint for exporting traces",
    )
    otel_exporter_otlp_headers: str | None = Field(
        default=None,
        description="Comma separated key=value pairs added to OTLP requests",
    )
    otel_service_name: str | None = Field(
        default=None, description="Optional override for OpenTelemetry service.name"
    )

    worker_prometheus_port: int | None = Field(
        default=None,
        description="Optional port that exposes worker Prometheus metrics",
    )
    worker_prometheus_host: str = Field(
        default="0.0.0.0",
        description="Host interface used for worker Prometheus exporter",
    )


@lru_cache
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()
