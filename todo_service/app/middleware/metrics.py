"""Metrics middleware for HTTP request instrumentation with trace correlation."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from opentelemetry import trace

from todo_service.infra.metrics.prometheus import (
    http_request_duration_seconds,
    http_requests_in_progress,
    http_requests_total,
)

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Message, Receive, Scope, Send

    from todo_service.infra.tracing.context import Telemetry


def endpoint_template(scope: Scope) -> str:
    """Route path template for low cardinality labels.

    e.g. "/tasks/{task_id}" instead of "/tasks/123". Falls back to the raw
    path when no route matched.
    """
    route = scope.get("route")
    if route is not None and hasattr(route, "path"):
        return route.path
    return scope.get("path", "")


class MetricsMiddleware:
    """Count and time every HTTP request, whatever its outcome.

    Records exactly one ``todo_app.requests`` increment and one
    ``todo_app.request_duration`` observation (milliseconds) per request,
    labelled with method, route template and final status code, on every
    path: handled responses, preflight, 405, validation failures and
    unhandled exceptions (recorded as 500). The same labels feed the
    Prometheus series, linked to the trace via exemplars.

    Must be the outermost application middleware so the status it sees is
    the one the client receives.
    """

    def __init__(self, app: ASGIApp, telemetry: Telemetry) -> None:
        self.app = app
        self.telemetry = telemetry

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope["method"]
        # Default to error in case of exception before the response starts
        status_code = 500

        async def send_recording_status(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        in_progress = http_requests_in_progress.labels(method=method)
        in_progress.inc()
        start_time = time.perf_counter()

        try:
            await self.app(scope, receive, send_recording_status)
        finally:
            duration = time.perf_counter() - start_time
            in_progress.dec()

            # The router stores the matched route in scope on the way in
            endpoint = endpoint_template(scope)
            self.telemetry.request_metrics.record(method, endpoint, status_code, duration * 1000)

            ctx = trace.get_current_span().get_span_context()
            duration_histogram = http_request_duration_seconds.labels(method=method, endpoint=endpoint)
            request_counter = http_requests_total.labels(method=method, endpoint=endpoint, status=status_code)
            if ctx.is_valid:
                exemplar = {"trace_id": format(ctx.trace_id, "032x")}
                duration_histogram.observe(duration, exemplar=exemplar)
                request_counter.inc(exemplar=exemplar)
            else:
                duration_histogram.observe(duration)
                request_counter.inc()
