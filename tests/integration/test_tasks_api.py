"""End-to-end tests for the tasks API through the full middleware stack."""
from __future__ import annotations

import httpx
import pytest
from fastapi import FastAPI
from httpx import AsyncClient
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode

from tests.utils import (
    duration_count,
    find_span,
    metric_points,
    request_count,
    server_span,
    span_events,
)

pytestmark = pytest.mark.integration

CORS_HEADERS = {
    "access-control-allow-origin": "*",
    "access-control-allow-methods": "GET, POST, DELETE, OPTIONS",
    "access-control-allow-headers": "Content-Type",
}


def assert_cors(response: httpx.Response) -> None:
    for key, value in CORS_HEADERS.items():
        assert response.headers[key] == value


class TestScenarios:
    async def test_empty_list(self, client: AsyncClient) -> None:
        response = await client.get("/tasks")

        assert response.status_code == 200
        assert response.json() == []
        assert_cors(response)

    async def test_create_complete_delete(self, client: AsyncClient) -> None:
        created = await client.post("/tasks", json={"title": "Buy milk"})
        assert created.status_code == 201
        task = created.json()
        assert task["title"] == "Buy milk"
        assert task["completed"] is False
        assert isinstance(task["id"], int)
        assert task["created_at"]

        listed = await client.get("/tasks")
        assert [item["id"] for item in listed.json()].count(task["id"]) == 1

        completed = await client.post(f"/tasks/{task['id']}/complete")
        assert completed.status_code == 200
        assert completed.json() == {**task, "completed": True}

        again = await client.post(f"/tasks/{task['id']}/complete")
        assert again.status_code == 200
        assert again.json()["completed"] is True

        deleted = await client.delete(f"/tasks/{task['id']}")
        assert deleted.status_code == 204
        assert deleted.content == b""

        missing = await client.delete(f"/tasks/{task['id']}")
        assert missing.status_code == 404
        assert missing.json()["detail"] == "Task not found"

    async def test_list_newest_first(self, client: AsyncClient) -> None:
        for title in ("one", "two", "three"):
            await client.post("/tasks", json={"title": title})

        response = await client.get("/tasks")
        assert [task["title"] for task in response.json()] == ["three", "two", "one"]


class TestValidation:
    @pytest.mark.parametrize(
        ("content", "detail"),
        [
            (b'{"title": ""}', "Title is required"),
            (b"{}", "Title is required"),
            (b'{"title": 5}', "Title is required"),
            (b"not json", "Invalid request body"),
            (b"[]", "Invalid request body"),
            (b"", "Invalid request body"),
        ],
    )
    async def test_bad_create_body(
        self, client: AsyncClient, content: bytes, detail: str,
    ) -> None:
        response = await client.post(
            "/tasks", content=content, headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.headers["content-type"] == "application/problem+json"
        body = response.json()
        assert body["status"] == 400
        assert body["title"] == "Bad Request"
        assert body["detail"] == detail
        assert body["instance"] == "/tasks"
        assert_cors(response)

        # Never reached the store
        assert (await client.get("/tasks")).json() == []

    @pytest.mark.parametrize("method", ["DELETE", "POST"])
    @pytest.mark.parametrize(
        "raw_id",
        ["abc", "1_0", "\u0661", "1.5", "99999999999999999999", "-9223372036854775809"],
    )
    async def test_non_numeric_id(self, client: AsyncClient, method: str, raw_id: str) -> None:
        path = f"/tasks/{raw_id}" if method == "DELETE" else f"/tasks/{raw_id}/complete"
        response = await client.request(method, path)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid task ID"

    async def test_complete_unknown_id(self, client: AsyncClient) -> None:
        response = await client.post("/tasks/999/complete")

        assert response.status_code == 404
        assert response.json()["type"] == "task-not-found"
        assert_cors(response)


class TestMethodsAndPreflight:
    @pytest.mark.parametrize("path", ["/tasks", "/tasks/1", "/tasks/1/complete"])
    async def test_preflight(self, client: AsyncClient, path: str) -> None:
        response = await client.options(path)

        assert response.status_code == 200
        assert response.content == b""
        assert_cors(response)

    @pytest.mark.parametrize(
        "method,path", [("PUT", "/tasks"), ("PATCH", "/tasks/1"), ("GET", "/tasks/1/complete")],
    )
    async def test_other_verbs_not_allowed(self, client: AsyncClient, method: str, path: str) -> None:
        response = await client.request(method, path)

        assert response.status_code == 405
        assert response.json()["status"] == 405
        assert_cors(response)


class TestInternalErrors:
    async def test_store_failure_is_500(
        self, client: AsyncClient, app: FastAPI, span_exporter: InMemorySpanExporter,
    ) -> None:
        async with app.state.database.engine.begin() as conn:
            await conn.exec_driver_sql("DROP TABLE tasks")

        response = await client.get("/tasks")

        assert response.status_code == 500
        assert response.json()["detail"] == "Internal server error"
        assert_cors(response)
        assert server_span(span_exporter).status.status_code == StatusCode.ERROR

        # The process keeps serving
        assert (await client.options("/tasks")).status_code == 200

    async def test_simulated_failure_is_500(
        self, client: AsyncClient, span_exporter: InMemorySpanExporter,
    ) -> None:
        response = await client.post("/tasks", json={"title": "errorTest"})

        assert response.status_code == 500
        db_span = find_span(span_exporter, "db.create_task")
        assert db_span.attributes["error.type"] == "SimulatedError"
        assert db_span.parent.span_id == server_span(span_exporter).context.span_id

    async def test_unhandled_exception_is_500_with_cors(
        self,
        client: AsyncClient,
        app: FastAPI,
        metric_reader: InMemoryMetricReader,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        async def explode() -> list:
            raise RuntimeError("unexpected")

        monkeypatch.setattr(app.state.task_repository, "list_tasks", explode)

        response = await client.get("/tasks")

        assert response.status_code == 500
        assert response.json()["type"] == "internal-error"
        assert "unexpected" not in response.text
        assert_cors(response)
        assert request_count(metric_reader, "GET", "/tasks", 500) == 1


class TestTelemetry:
    async def test_one_server_span_per_request(
        self, client: AsyncClient, span_exporter: InMemorySpanExporter,
    ) -> None:
        await client.post("/tasks", json={"title": "Buy milk"})

        span = server_span(span_exporter)
        assert span.end_time is not None
        assert span.attributes["operation"] == "create_task"
        assert span.attributes["task.title"] == "Buy milk"

    async def test_bodies_captured_on_server_span(
        self, client: AsyncClient, span_exporter: InMemorySpanExporter,
    ) -> None:
        response = await client.post("/tasks", json={"title": "Buy milk"})

        span = server_span(span_exporter)
        [request_event] = span_events(span, "http.request.body")
        assert '"Buy milk"' in request_event["body"]

        [response_event] = span_events(span, "http.response.body")
        assert response_event["body"] == response.text
        assert response_event["status_code"] == 201

    async def test_trace_tree_across_boundaries(
        self, client: AsyncClient, span_exporter: InMemorySpanExporter,
    ) -> None:
        # Drop the schema setup spans recorded by the database fixture
        span_exporter.clear()
        await client.post("/tasks", json={"title": "Buy milk"})

        root = server_span(span_exporter)
        db_span = find_span(span_exporter, "db.create_task")
        notify_span = find_span(span_exporter, "external.api.notification")

        assert db_span.parent.span_id == root.context.span_id
        assert notify_span.parent.span_id == root.context.span_id
        trace_ids = {span.context.trace_id for span in span_exporter.get_finished_spans()}
        assert trace_ids == {root.context.trace_id}

    async def test_incoming_trace_context_is_continued(
        self, client: AsyncClient, span_exporter: InMemorySpanExporter,
    ) -> None:
        trace_id = "4bf92f3577b34da6a3ce929d0e0e4736"
        await client.get(
            "/tasks", headers={"traceparent": f"00-{trace_id}-00f067aa0ba902b7-01"},
        )

        assert format(server_span(span_exporter).context.trace_id, "032x") == trace_id

    async def test_every_outcome_counted_once(
        self, client: AsyncClient, metric_reader: InMemoryMetricReader,
    ) -> None:
        created = (await client.post("/tasks", json={"title": "Buy milk"})).json()
        await client.post("/tasks", json={"title": ""})
        await client.post(f"/tasks/{created['id']}/complete")
        await client.delete("/tasks/999")
        await client.options("/tasks/1")
        await client.put("/tasks")

        expected = [
            ("POST", "/tasks", 201),
            ("POST", "/tasks", 400),
            ("POST", "/tasks/{task_id}/complete", 200),
            ("DELETE", "/tasks/{task_id}", 404),
            ("OPTIONS", "/tasks/{task_id}", 200),
            ("PUT", "/tasks", 405),
        ]
        for method, endpoint, status_code in expected:
            assert request_count(metric_reader, method, endpoint, status_code) == 1
            assert duration_count(metric_reader, method, endpoint, status_code) == 1

        total = sum(point.value for point in metric_points(metric_reader, "todo_app.requests"))
        assert total == len(expected)

    async def test_prometheus_endpoint(self, client: AsyncClient) -> None:
        await client.get("/tasks")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert 'http_requests_total{method="GET",endpoint="/tasks",status="200"}' in response.text
        assert "database_query_duration_seconds" in response.text


class TestNotification:
    async def test_created_task_is_announced(
        self, client: AsyncClient, notify_requests: list[httpx.Request],
    ) -> None:
        task = (await client.post("/tasks", json={"title": "Buy milk"})).json()

        [request] = notify_requests
        assert request.url.params["task_id"] == str(task["id"])
        assert request.headers["X-Task-Title"] == "Buy milk"

    async def test_notification_failure_does_not_fail_create(
        self,
        client: AsyncClient,
        app: FastAPI,
        span_exporter: InMemorySpanExporter,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        def unreachable(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        http_client = app.state.notifier.client.client
        monkeypatch.setattr(http_client, "_transport", httpx.MockTransport(unreachable))

        response = await client.post("/tasks", json={"title": "Buy milk"})

        assert response.status_code == 201
        notify_span = find_span(span_exporter, "external.api.notification")
        assert notify_span.status.status_code == StatusCode.ERROR
        assert server_span(span_exporter).status.status_code != StatusCode.ERROR
