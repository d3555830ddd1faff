"""Tests for the instrumented outbound HTTP client."""
from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncGenerator

import httpx
import pytest
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import SpanKind, StatusCode

from todo_service.infra.external import InstrumentedHTTPClient
from todo_service.infra.tracing.context import Telemetry
from tests.utils import find_span, span_events


def _echo(request: httpx.Request) -> httpx.Response:
    return httpx.Response(201, json={"received": request.content.decode()})


async def test_records_request_and_response_bodies(
    telemetry: Telemetry, span_exporter: InMemorySpanExporter,
) -> None:
    async with InstrumentedHTTPClient(telemetry, transport=httpx.MockTransport(_echo)) as client:
        with telemetry.tracer.start_as_current_span("caller"):
            request = client.build_request("POST", "http://api.test/hooks", content=b'{"id": 1}')
            response = await client.send_with_body_capture(request)

    caller = find_span(span_exporter, "caller")
    assert span_events(caller, "http.request.body") == [{"body": '{"id": 1}', "size": 9}]

    [response_event] = span_events(caller, "http.response.body")
    assert response_event["status_code"] == 201
    assert response_event["size"] == len(response.content)
    assert response_event["body"] == response.text

    assert caller.attributes["http.method"] == "POST"
    assert caller.attributes["http.url"] == "http://api.test/hooks"
    assert caller.attributes["http.host"] == "api.test"
    assert caller.attributes["http.status_code"] == 201
    assert caller.attributes["http.status_text"] == "Created"


async def test_body_delivered_and_still_readable(telemetry: Telemetry) -> None:
    async with InstrumentedHTTPClient(telemetry, transport=httpx.MockTransport(_echo)) as client:
        request = client.build_request("POST", "http://api.test/hooks", json={"title": "Buy milk"})
        response = await client.send_with_body_capture(request)

    # The transport saw the same bytes that were captured
    assert response.json() == {"received": '{"title":"Buy milk"}'}


async def test_get_without_body_has_no_request_event(
    telemetry: Telemetry, span_exporter: InMemorySpanExporter,
) -> None:
    async with InstrumentedHTTPClient(telemetry, transport=httpx.MockTransport(_echo)) as client:
        with telemetry.tracer.start_as_current_span("caller"):
            await client.send_with_body_capture(client.build_request("GET", "http://api.test/get"))

    caller = find_span(span_exporter, "caller")
    assert span_events(caller, "http.request.body") == []
    assert len(span_events(caller, "http.response.body")) == 1


async def test_transport_failure_recorded_and_reraised(
    telemetry: Telemetry, span_exporter: InMemorySpanExporter,
) -> None:
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with InstrumentedHTTPClient(telemetry, transport=httpx.MockTransport(refuse)) as client:
        with pytest.raises(httpx.ConnectError):
            with telemetry.tracer.start_as_current_span("caller"):
                await client.send_with_body_capture(client.build_request("GET", "http://api.test/get"))

    caller = find_span(span_exporter, "caller")
    assert caller.status.status_code == StatusCode.ERROR
    assert any(event.name == "exception" for event in caller.events)
    assert span_events(caller, "http.response.body") == []


async def test_transport_span_is_child_of_active_span(
    telemetry: Telemetry, span_exporter: InMemorySpanExporter,
) -> None:
    async with InstrumentedHTTPClient(telemetry, transport=httpx.MockTransport(_echo)) as client:
        with telemetry.tracer.start_as_current_span("caller"):
            await client.send_with_body_capture(client.build_request("GET", "http://api.test/get"))

    caller = find_span(span_exporter, "caller")
    client_spans = [span for span in span_exporter.get_finished_spans() if span.kind == SpanKind.CLIENT]
    assert len(client_spans) == 1
    assert client_spans[0].parent.span_id == caller.context.span_id


def test_default_timeout_is_ten_seconds() -> None:
    client = InstrumentedHTTPClient(Telemetry.noop(), instrument=False)
    assert client.client.timeout == httpx.Timeout(10.0)


@pytest.fixture
async def trickling_server() -> AsyncGenerator[str, None]:
    """Local server that sends a 10-byte body one byte every 0.3s."""
    handlers: list[asyncio.Task] = []

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        handlers.append(asyncio.current_task())
        try:
            await reader.readuntil(b"\r\n\r\n")
            writer.write(b"HTTP/1.1 200 OK\r\nContent-Length: 10\r\n\r\n")
            for _ in range(10):
                await writer.drain()
                await asyncio.sleep(0.3)
                writer.write(b"x")
            await writer.drain()
        except ConnectionError:
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(handle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    yield f"http://127.0.0.1:{port}/slow"

    for task in handlers:
        task.cancel()
    server.close()
    await server.wait_closed()


async def test_timeout_bounds_the_whole_call(
    telemetry: Telemetry, span_exporter: InMemorySpanExporter, trickling_server: str,
) -> None:
    # Every single read completes well inside 0.5s; only the total runs over
    async with InstrumentedHTTPClient(telemetry, timeout=0.5) as client:
        started = time.monotonic()
        with pytest.raises(httpx.TimeoutException, match="0.5s total"):
            with telemetry.tracer.start_as_current_span("caller"):
                await client.send_with_body_capture(client.build_request("GET", trickling_server))
        elapsed = time.monotonic() - started

    assert elapsed < 1.0
    caller = find_span(span_exporter, "caller")
    assert caller.status.status_code == StatusCode.ERROR
    assert span_events(caller, "http.response.body") == []
