"""Pytest configuration and shared fixtures.

Organization:
    - Telemetry Fixtures: in-memory span exporter, metric reader, Telemetry
    - Settings Fixtures: per-test settings with a temporary SQLite file
    - Database Fixtures: initialized Database and TaskRepository
    - Outbound Fixtures: notifier backed by httpx.MockTransport
    - Application Fixtures: FastAPI app and HTTP client

Components are injected into ``create_app`` so no test touches the network,
a shared database file or the process-wide OpenTelemetry providers.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from typing import TYPE_CHECKING

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from todo_service.core.settings import (
    AppSettings,
    DatabaseSettings,
    LoggingSettings,
    NotificationSettings,
    OtelSettings,
    Settings,
)
from todo_service.infra.tracing.context import Telemetry

if TYPE_CHECKING:
    from pathlib import Path

    from fastapi import FastAPI

    from todo_service.features.tasks.repository import TaskRepository
    from todo_service.infra.database import Database
    from todo_service.infra.external import TaskNotifier

# Ensure tests never export to a real collector
os.environ.pop("OTEL_EXPORTER_OTLP_ENDPOINT", None)

NOTIFY_BASE_URL = "http://notify.test"


# ============================================================================
# Telemetry Fixtures
# ============================================================================


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    """Collects every finished span synchronously."""
    return InMemorySpanExporter()


@pytest.fixture
def metric_reader() -> InMemoryMetricReader:
    """Collects metrics on demand via get_metrics_data()."""
    return InMemoryMetricReader()


@pytest.fixture
def telemetry(span_exporter: InMemorySpanExporter, metric_reader: InMemoryMetricReader) -> Telemetry:
    """Telemetry bound to in-memory exporters, never installed globally."""
    tracer_provider = TracerProvider()
    tracer_provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    meter_provider = MeterProvider(metric_readers=[metric_reader])
    return Telemetry(tracer_provider, meter_provider, shutdown_timeout=1.0)


# ============================================================================
# Settings Fixtures
# ============================================================================


@pytest.fixture
def db_settings(tmp_path: Path) -> DatabaseSettings:
    """Database settings pointing at a fresh SQLite file."""
    return DatabaseSettings(
        url=f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}",
        simulated_failure_title="errorTest",
    )


@pytest.fixture
def settings(db_settings: DatabaseSettings) -> Settings:
    """Unified settings for an isolated test application."""
    return Settings(
        app=AppSettings(environment="test"),
        db=db_settings,
        logging=LoggingSettings(console_enabled=False, otel_bridge=False),
        notifications=NotificationSettings(base_url=NOTIFY_BASE_URL),
        otel=OtelSettings(),
    )


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def database(db_settings: DatabaseSettings, telemetry: Telemetry) -> AsyncGenerator[Database]:
    """Initialized task store, disposed after the test."""
    from todo_service.infra.database import Database

    db = Database(db_settings, telemetry)
    await db.initialize()
    try:
        yield db
    finally:
        await db.close()


@pytest.fixture
def repository(database: Database, telemetry: Telemetry) -> TaskRepository:
    from todo_service.features.tasks.repository import TaskRepository

    return TaskRepository(database, telemetry)


# ============================================================================
# Outbound Fixtures
# ============================================================================


@pytest.fixture
def notify_requests() -> list[httpx.Request]:
    """Requests received by the mocked notification endpoint."""
    return []


@pytest.fixture
async def notifier(
    settings: Settings,
    telemetry: Telemetry,
    notify_requests: list[httpx.Request],
) -> AsyncGenerator[TaskNotifier]:
    """Notifier whose endpoint echoes the query string back, like httpbin /get."""
    from todo_service.infra.external import InstrumentedHTTPClient, TaskNotifier

    def handler(request: httpx.Request) -> httpx.Response:
        notify_requests.append(request)
        return httpx.Response(200, json={"args": dict(request.url.params)})

    client = InstrumentedHTTPClient(telemetry, transport=httpx.MockTransport(handler))
    task_notifier = TaskNotifier(client, settings.notifications, telemetry)
    try:
        yield task_notifier
    finally:
        await task_notifier.close()


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def app(settings: Settings, telemetry: Telemetry, database: Database, notifier: TaskNotifier) -> FastAPI:
    """FastAPI application wired to the test components.

    ASGITransport does not run the lifespan, so the database fixture does
    the startup work instead.
    """
    from todo_service.app.main import create_app

    return create_app(settings, telemetry=telemetry, database=database, notifier=notifier)


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Async HTTP client for making requests to the app.

    Unhandled exceptions are turned into 500 responses instead of being
    re-raised into the test.
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
