"""OpenTelemetry export configuration."""

from __future__ import annotations

from typing import Any

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class OtelSettings(BaseSettings):
    """OpenTelemetry traces, metrics and logs settings.

    Environment variables use OTEL_ prefix. The collector endpoint is the
    single switch between local and network export:

    - OTEL_EXPORTER_OTLP_ENDPOINT unset: console exporters (stdout)
    - OTEL_EXPORTER_OTLP_ENDPOINT=localhost:4317: OTLP/gRPC to that collector
    """

    # ──────────────────────────────────────────────────────────────
    # Export target
    # ──────────────────────────────────────────────────────────────

    exporter_otlp_endpoint: str | None = Field(
        default=None,
        description="OTLP gRPC collector endpoint (e.g., localhost:4317). Unset = console output.",
    )

    exporter_otlp_insecure: bool = Field(
        default=True,
        description="Use an insecure gRPC channel (no TLS) - for local collectors",
    )

    export_timeout: int = Field(
        default=5,
        ge=1,
        le=120,
        description="Maximum time (seconds) to wait for a single export",
    )

    # ──────────────────────────────────────────────────────────────
    # Service identification
    # ──────────────────────────────────────────────────────────────

    service_name: str = Field(
        default="todo-app",
        min_length=1,
        max_length=100,
        description="service.name resource attribute",
    )

    service_version: str = Field(
        default="1.0.0",
        min_length=1,
        max_length=50,
        description="service.version resource attribute",
    )

    # ──────────────────────────────────────────────────────────────
    # Pipeline tuning
    # ──────────────────────────────────────────────────────────────

    metric_export_interval: int = Field(
        default=60000,
        ge=100,
        le=600000,
        description="Interval (ms) between periodic metric exports",
    )

    shutdown_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Grace period (seconds) for flushing telemetry at shutdown",
    )

    # ──────────────────────────────────────────────────────────────
    # Instrumentation toggles
    # ──────────────────────────────────────────────────────────────

    instrument_fastapi: bool = Field(
        default=True,
        description="Create a server span per inbound request",
    )

    instrument_httpx: bool = Field(
        default=True,
        description="Create a client span per outbound HTTPX request",
    )

    instrument_sqlalchemy: bool = Field(
        default=True,
        description="Create a span per executed SQL statement",
    )

    @computed_field
    @property
    def use_otlp(self) -> bool:
        """True when telemetry goes to a collector rather than the console."""
        return bool(self.exporter_otlp_endpoint)

    def exporter_kwargs(self) -> dict[str, Any]:
        """Return kwargs shared by the OTLP span, metric and log exporters."""
        return {
            "endpoint": self.exporter_otlp_endpoint,
            "insecure": self.exporter_otlp_insecure,
            "timeout": self.export_timeout,
        }

    def resource_attributes(self, environment: str = "unknown") -> dict[str, str]:
        """Build resource attributes dict for service identification."""
        from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION

        return {
            SERVICE_NAME: self.service_name,
            SERVICE_VERSION: self.service_version,
            "deployment.environment": environment,
        }

    model_config = SettingsConfigDict(
        env_prefix="OTEL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
