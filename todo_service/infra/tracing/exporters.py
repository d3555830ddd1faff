"""Exporter construction and the observable span exporter wrapper.

The collector endpoint decides the destination for all three signals:
console exporters when it is unset, OTLP/gRPC exporters when it is set.

ObservableSpanExporter wraps any SpanExporter and tracks, in Prometheus:
- Spans exported (success/failure counts)
- Export duration (latency histogram)

Example:
    from opentelemetry.sdk.trace.export import ConsoleSpanExporter
    from todo_service.infra.tracing.exporters import ObservableSpanExporter

    exporter = ObservableSpanExporter(ConsoleSpanExporter(), exporter_type="console")
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult

from todo_service.infra.metrics.prometheus import (
    otel_export_duration_seconds,
    otel_spans_exported_total,
    otel_spans_failed_total,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from opentelemetry.sdk.metrics.export import MetricExporter
    from opentelemetry.sdk.trace import ReadableSpan

    from todo_service.core.settings.otel import OtelSettings

logger = logging.getLogger(__name__)


class ObservableSpanExporter(SpanExporter):
    """Span exporter wrapper that adds Prometheus metrics instrumentation.

    Export failures are counted and logged but never reach request
    handling; the batch processor runs exports on its own thread.

    Attributes:
        exporter: The wrapped SpanExporter instance.
        exporter_type: Label value for metrics (e.g., "otlp", "console").
    """

    def __init__(self, exporter: SpanExporter, exporter_type: str = "otlp") -> None:
        self._exporter = exporter
        self._exporter_type = exporter_type

    @property
    def exporter(self) -> SpanExporter:
        return self._exporter

    @property
    def exporter_type(self) -> str:
        return self._exporter_type

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Export spans, recording batch outcome and latency."""
        batch_size = len(spans)
        start_time = time.perf_counter()

        try:
            result = self._exporter.export(spans)
        except Exception as e:
            duration = time.perf_counter() - start_time
            otel_export_duration_seconds.labels(exporter_type=self._exporter_type).observe(duration)
            error_type = self._classify_error(e)
            otel_spans_failed_total.labels(
                exporter_type=self._exporter_type, error_type=error_type,
            ).inc(batch_size)
            logger.warning(
                f"Span export failed: {e}",
                extra={
                    "exporter_type": self._exporter_type,
                    "error_type": error_type,
                    "batch_size": batch_size,
                },
            )
            raise

        duration = time.perf_counter() - start_time
        otel_export_duration_seconds.labels(exporter_type=self._exporter_type).observe(duration)

        if result == SpanExportResult.SUCCESS:
            otel_spans_exported_total.labels(exporter_type=self._exporter_type).inc(batch_size)
        else:
            otel_spans_failed_total.labels(
                exporter_type=self._exporter_type, error_type="export_failed",
            ).inc(batch_size)
        return result

    def _classify_error(self, error: Exception) -> str:
        """Classify an exception into an error type label."""
        error_name = type(error).__name__.lower()
        message = str(error).lower()

        if "timeout" in error_name or "timeout" in message:
            return "timeout"
        if "connection" in error_name or "connection" in message:
            return "connection_error"
        if "unavailable" in message:
            return "service_unavailable"
        return "unknown"

    def shutdown(self) -> None:
        """Shutdown the underlying exporter."""
        self._exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Force flush the underlying exporter."""
        return self._exporter.force_flush(timeout_millis)


def create_span_exporter(settings: OtelSettings) -> ObservableSpanExporter:
    """Build the span exporter selected by the collector endpoint."""
    if settings.use_otlp:
        from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter

        return ObservableSpanExporter(
            OTLPSpanExporter(**settings.exporter_kwargs()), exporter_type="otlp",
        )

    from opentelemetry.sdk.trace.export import ConsoleSpanExporter

    return ObservableSpanExporter(ConsoleSpanExporter(), exporter_type="console")


def create_metric_exporter(settings: OtelSettings) -> MetricExporter:
    """Build the metric exporter selected by the collector endpoint."""
    if settings.use_otlp:
        from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter

        return OTLPMetricExporter(**settings.exporter_kwargs())

    from opentelemetry.sdk.metrics.export import ConsoleMetricExporter

    return ConsoleMetricExporter()


def create_log_exporter(settings: OtelSettings) -> Any:
    """Build the log record exporter selected by the collector endpoint."""
    if settings.use_otlp:
        from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter

        return OTLPLogExporter(**settings.exporter_kwargs())

    from opentelemetry.sdk._logs.export import ConsoleLogExporter

    return ConsoleLogExporter()
