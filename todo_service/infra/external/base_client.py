"""Instrumented HTTP client for outbound calls.

Wraps ``httpx.AsyncClient`` with:
- OpenTelemetry transport instrumentation (one client span per call)
- Request/response bodies recorded as events on the active span
- A deadline on the whole call, headers and body together
- Request/response logging

Failed calls are recorded on the active span and re-raised unchanged;
there is no retry.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import httpx
from opentelemetry import trace

from todo_service.infra.tracing.context import Telemetry

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class InstrumentedHTTPClient:
    """HTTP client that records outbound bodies and status on the active span.

    Example:
        ```python
        client = InstrumentedHTTPClient(telemetry, timeout=10.0)
        request = client.build_request("POST", "https://example.com/hooks", json={"id": 1})
        response = await client.send_with_body_capture(request)
        response.json()  # body is still readable
        ```
    """

    def __init__(
        self,
        telemetry: Telemetry | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        instrument: bool = True,
    ) -> None:
        """Initialize HTTP client.

        Args:
            telemetry: Providers the transport spans go to.
            timeout: Deadline in seconds for the whole call, body included.
            headers: Default headers to include in all requests.
            transport: Replacement transport (tests use httpx.MockTransport).
            instrument: Attach the HTTPX transport instrumentation.
        """
        self.telemetry = telemetry or Telemetry.noop()
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            headers=headers or {},
            transport=transport,
            limits=httpx.Limits(
                max_keepalive_connections=20,
                max_connections=100,
            ),
        )
        if instrument:
            from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

            HTTPXClientInstrumentor.instrument_client(
                self.client,
                tracer_provider=self.telemetry.tracer_provider,
            )

    def build_request(self, method: str, url: str, **kwargs: Any) -> httpx.Request:
        """Build a request carrying the client's defaults (headers, timeout)."""
        return self.client.build_request(method, url, **kwargs)

    async def send_with_body_capture(self, request: httpx.Request) -> httpx.Response:
        """Send ``request`` and record both bodies as events on the active span.

        Args:
            request: Fully built request.

        Returns:
            The response, with its body loaded and still readable.

        Raises:
            httpx.HTTPError: Transport failures (connection refused, timeout,
                DNS). The error is recorded on the span first.
        """
        span = trace.get_current_span()

        # aread() buffers the stream so the body can be sent after we read it
        request_body = await request.aread()
        if request_body:
            span.add_event(
                "http.request.body",
                {
                    "body": request_body.decode("utf-8", errors="replace"),
                    "size": len(request_body),
                },
            )

        span.set_attributes(
            {
                "http.method": request.method,
                "http.url": str(request.url),
                "http.host": request.url.host,
            },
        )

        logger.info(
            f"{request.method} request to {request.url}",
            extra={"method": request.method, "url": str(request.url)},
        )

        try:
            try:
                # httpx bounds each connect and read step; this bounds the whole call
                async with asyncio.timeout(self.timeout):
                    response = await self.client.send(request)
                    response_body = await response.aread()
            except TimeoutError as e:
                msg = f"request exceeded {self.timeout}s total"
                raise httpx.TimeoutException(msg, request=request) from e
        except httpx.HTTPError as e:
            span.record_exception(e)
            span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
            logger.warning(
                f"{request.method} request to {request.url} failed: {e}",
                extra={"method": request.method, "url": str(request.url), "error_type": type(e).__name__},
            )
            raise

        span.add_event(
            "http.response.body",
            {
                "body": response_body.decode("utf-8", errors="replace"),
                "size": len(response_body),
                "status_code": response.status_code,
            },
        )
        span.set_attributes(
            {
                "http.status_code": response.status_code,
                "http.status_text": httpx.codes.get_reason_phrase(response.status_code),
            },
        )

        logger.info(
            f"{request.method} response from {request.url}",
            extra={
                "method": request.method,
                "url": str(request.url),
                "status_code": response.status_code,
                "duration_ms": response.elapsed.total_seconds() * 1000,
            },
        )
        return response

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        await self.client.aclose()

    async def __aenter__(self) -> InstrumentedHTTPClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()
