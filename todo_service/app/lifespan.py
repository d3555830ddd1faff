"""Application lifespan management.

Startup:
1. Application info gauge
2. Database (reachability check and schema), fatal on failure

Shutdown, in reverse:
1. Database engine
2. Outbound HTTP client
3. Telemetry flush within the grace period, then the log bridge
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from todo_service.infra.logging.config import detach_otel_handler
from todo_service.infra.metrics.prometheus import application_info
from todo_service.infra.tracing.context import TelemetryShutdownError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Components are created by ``create_app`` and stored on ``app.state``;
    this only starts and stops them.
    """
    state = app.state
    app_settings = state.settings.app

    application_info.labels(
        version=app_settings.version,
        service=app_settings.service_name,
        environment=app_settings.environment,
    ).set(1)
    logger.info(
        "Application starting",
        extra={
            "service": app_settings.service_name,
            "version": app_settings.version,
            "environment": app_settings.environment,
        },
    )

    await state.database.initialize()

    logger.info("Application startup complete", extra={"port": app_settings.port})

    yield

    logger.info("Application shutting down")

    await state.database.close()

    if state.notifier is not None:
        await state.notifier.close()

    try:
        state.telemetry.shutdown()
    except TelemetryShutdownError as e:
        logger.error(f"Telemetry shutdown incomplete: {e}", extra={"pipeline": e.pipeline})
    finally:
        detach_otel_handler()

    logger.info("Application shutdown complete")
