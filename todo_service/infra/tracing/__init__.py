"""OpenTelemetry tracing infrastructure.

This package provides telemetry setup and utilities:
- setup_telemetry(): Build trace/metric/log pipelines, returns a Telemetry
- Telemetry: Context object (tracer, meter, request metrics, shutdown)
- instrument_app(): Add server spans to a FastAPI application
- get_tracer()/get_meter(): Process-wide accessors (no-op before setup)
- add_span_attributes()/add_span_event()/record_exception(): Current-span helpers
- ObservableSpanExporter: Span exporter with Prometheus metrics
"""

from todo_service.infra.tracing.context import (
    Telemetry,
    TelemetryInitError,
    TelemetryShutdownError,
)
from todo_service.infra.tracing.exporters import ObservableSpanExporter
from todo_service.infra.tracing.opentelemetry import (
    add_span_attributes,
    add_span_event,
    get_meter,
    get_tracer,
    instrument_app,
    record_exception,
    setup_telemetry,
)

__all__ = [
    "ObservableSpanExporter",
    "Telemetry",
    "TelemetryInitError",
    "TelemetryShutdownError",
    "add_span_attributes",
    "add_span_event",
    "get_meter",
    "get_tracer",
    "instrument_app",
    "record_exception",
    "setup_telemetry",
]
