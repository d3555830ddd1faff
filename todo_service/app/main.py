"""FastAPI application factory."""

from __future__ import annotations

import logging

from fastapi import FastAPI

from todo_service.app.exception_handlers import configure_exception_handlers
from todo_service.app.lifespan import lifespan
from todo_service.app.middleware import configure_middleware
from todo_service.app.router import setup_routers
from todo_service.core.settings import Settings, get_settings
from todo_service.features.tasks.repository import TaskRepository
from todo_service.infra.database import Database
from todo_service.infra.external import InstrumentedHTTPClient, TaskNotifier
from todo_service.infra.logging.config import attach_otel_handler, setup_logging
from todo_service.infra.tracing.context import Telemetry
from todo_service.infra.tracing.opentelemetry import instrument_app, setup_telemetry

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    *,
    telemetry: Telemetry | None = None,
    database: Database | None = None,
    notifier: TaskNotifier | None = None,
) -> FastAPI:
    """Create and configure FastAPI application.

    Components passed in are used as-is (tests inject in-memory telemetry,
    a temporary database or a mocked notifier); anything missing is built
    from settings. Telemetry is built before anything else so a broken
    export pipeline stops startup before the app exists.

    Args:
        settings: Unified settings. Defaults to the cached environment settings.
        telemetry: Telemetry context shared by every component.
        database: Task store.
        notifier: Outbound notifier for created tasks.

    Returns:
        Configured FastAPI application instance.

    Raises:
        TelemetryInitError: If a telemetry pipeline cannot be built.
    """
    settings = settings or get_settings()
    app_settings = settings.app

    setup_logging(settings.logging)

    if telemetry is None:
        telemetry = setup_telemetry(settings.otel, environment=app_settings.environment)
        if settings.logging.otel_bridge and telemetry.logger_provider is not None:
            attach_otel_handler(telemetry.logger_provider)

    if database is None:
        database = Database(
            settings.db,
            telemetry,
            instrument=settings.otel.instrument_sqlalchemy,
        )

    if notifier is None:
        client = InstrumentedHTTPClient(
            telemetry,
            timeout=settings.notifications.timeout,
            instrument=settings.otel.instrument_httpx,
        )
        notifier = TaskNotifier(client, settings.notifications, telemetry)

    app = FastAPI(
        title=app_settings.title,
        version=app_settings.version,
        docs_url=app_settings.docs_url,
        openapi_url=app_settings.openapi_url,
        debug=app_settings.debug,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.telemetry = telemetry
    app.state.database = database
    app.state.task_repository = TaskRepository(database, telemetry)
    app.state.notifier = notifier

    # Configure exception handlers (must be before middleware)
    configure_exception_handlers(app, app_settings)

    configure_middleware(app, settings, telemetry)

    setup_routers(app)

    # Server spans wrap the whole middleware stack
    instrument_app(app, telemetry, enabled=settings.otel.instrument_fastapi)

    logger.info(
        "Application created",
        extra={"service": app_settings.service_name, "version": app_settings.version},
    )
    return app
