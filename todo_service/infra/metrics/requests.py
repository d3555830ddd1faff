"""OpenTelemetry request instruments.

One counter increment and one duration observation per handled request,
both keyed by ``method``, ``endpoint`` (route template) and ``status_code``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from opentelemetry.metrics import Meter

REQUEST_COUNTER_NAME = "todo_app.requests"
REQUEST_DURATION_NAME = "todo_app.request_duration"


class RequestMetrics:
    """Request count and duration instruments created from one meter."""

    def __init__(self, meter: Meter) -> None:
        self.request_counter = meter.create_counter(
            name=REQUEST_COUNTER_NAME,
            description="Number of requests",
            unit="1",
        )
        self.request_duration = meter.create_histogram(
            name=REQUEST_DURATION_NAME,
            description="Request duration in milliseconds",
            unit="ms",
        )

    def record(self, method: str, endpoint: str, status_code: int, duration_ms: float) -> None:
        """Record the terminal outcome of one request."""
        attributes = {
            "method": method,
            "endpoint": endpoint,
            "status_code": status_code,
        }
        self.request_counter.add(1, attributes)
        self.request_duration.record(duration_ms, attributes)
