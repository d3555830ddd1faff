"""Prometheus metrics for monitoring with exemplar support."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram

# Custom registry so tests and the /metrics endpoint see only our series
REGISTRY = CollectorRegistry()

# Covers response times from 1ms to 10s
DEFAULT_LATENCY_BUCKETS = (
    0.001,
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
)

# HTTP metrics
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
    registry=REGISTRY,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

http_requests_in_progress = Gauge(
    "http_requests_in_progress",
    "Number of HTTP requests in progress",
    ["method"],
    registry=REGISTRY,
)

# Database metrics
database_query_duration_seconds = Histogram(
    "database_query_duration_seconds",
    "Database query duration in seconds",
    ["operation"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

database_pool_size = Gauge(
    "database_pool_size",
    "Configured number of connections kept open in the pool.",
    registry=REGISTRY,
)

database_pool_max_overflow = Gauge(
    "database_pool_max_overflow",
    "Configured maximum overflow connections beyond pool_size.",
    registry=REGISTRY,
)

database_pool_checkedout = Gauge(
    "database_pool_checkedout",
    "Number of connections currently checked out from the pool. "
    "Alert when approaching pool_size + max_overflow.",
    registry=REGISTRY,
)

# Outbound notification metrics
notification_requests_total = Counter(
    "notification_requests_total",
    "Outbound task notifications by outcome (success, http_error, failed).",
    ["outcome"],
    registry=REGISTRY,
)

# Application info
application_info = Gauge(
    "application_info",
    "Application information",
    ["version", "service", "environment"],
    registry=REGISTRY,
)

# OpenTelemetry export pipeline health
otel_spans_exported_total = Counter(
    "otel_spans_exported_total",
    "Total number of spans exported. "
    "Usage: Incremented after each successful batch export.",
    ["exporter_type"],
    registry=REGISTRY,
)

otel_spans_failed_total = Counter(
    "otel_spans_failed_total",
    "Total number of spans that failed to export. "
    "Indicates connectivity or collector issues.",
    ["exporter_type", "error_type"],
    registry=REGISTRY,
)

otel_export_duration_seconds = Histogram(
    "otel_export_duration_seconds",
    "Duration of span export operations in seconds.",
    ["exporter_type"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)
