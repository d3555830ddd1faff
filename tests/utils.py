"""Test utilities for inspecting exported telemetry.

Usage:
    from tests.utils import find_span, metric_points

    span = find_span(span_exporter, "db.create_task")
    points = metric_points(metric_reader, "todo_app.requests")
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from opentelemetry.sdk.metrics.export import InMemoryMetricReader
    from opentelemetry.sdk.trace import ReadableSpan
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter


def spans_named(exporter: InMemorySpanExporter, name: str) -> list[ReadableSpan]:
    """All finished spans called ``name``, in end order."""
    return [span for span in exporter.get_finished_spans() if span.name == name]


def find_span(exporter: InMemorySpanExporter, name: str) -> ReadableSpan:
    """The single finished span called ``name``."""
    matches = spans_named(exporter, name)
    names = [span.name for span in exporter.get_finished_spans()]
    assert len(matches) == 1, f"expected one {name!r} span, got {len(matches)} among {names}"
    return matches[0]


def server_span(exporter: InMemorySpanExporter) -> ReadableSpan:
    """The single SERVER-kind span (the inbound request)."""
    from opentelemetry.trace import SpanKind

    matches = [span for span in exporter.get_finished_spans() if span.kind == SpanKind.SERVER]
    assert len(matches) == 1, f"expected one server span, got {len(matches)}"
    return matches[0]


def span_events(span: ReadableSpan, name: str) -> list[dict[str, Any]]:
    """Attributes of every event called ``name`` on ``span``."""
    return [dict(event.attributes or {}) for event in span.events if event.name == name]


def metric_points(reader: InMemoryMetricReader, name: str) -> list[Any]:
    """Data points of the metric called ``name`` (empty when never recorded)."""
    data = reader.get_metrics_data()
    if data is None:
        return []
    points: list[Any] = []
    for resource_metrics in data.resource_metrics:
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name == name:
                    points.extend(metric.data.data_points)
    return points


def request_count(reader: InMemoryMetricReader, method: str, endpoint: str, status_code: int) -> int:
    """Value of ``todo_app.requests`` for one label combination."""
    total = 0
    for point in metric_points(reader, "todo_app.requests"):
        attributes = dict(point.attributes)
        if attributes == {"method": method, "endpoint": endpoint, "status_code": status_code}:
            total += point.value
    return total


def duration_count(reader: InMemoryMetricReader, method: str, endpoint: str, status_code: int) -> int:
    """Number of ``todo_app.request_duration`` observations for one label combination."""
    total = 0
    for point in metric_points(reader, "todo_app.request_duration"):
        attributes = dict(point.attributes)
        if attributes == {"method": method, "endpoint": endpoint, "status_code": status_code}:
            total += point.count
    return total
