"""Middleware configuration for FastAPI application.

Execution order (outermost to innermost):

1. OpenTelemetry server span (added by ``instrument_app``, wraps everything)
2. Metrics: one count/duration per request, every outcome
3. CORS headers: added to every response
4. Body capture: request/response bodies as events on the server span

Starlette applies middleware in reverse order of registration, so
``configure_middleware`` adds them innermost first.

Example Usage:
    from todo_service.app.middleware import configure_middleware

    configure_middleware(app, settings, telemetry)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from todo_service.app.middleware.body_capture import BodyCaptureMiddleware
from todo_service.app.middleware.cors import CORSHeadersMiddleware, get_cors_headers
from todo_service.app.middleware.metrics import MetricsMiddleware, endpoint_template

if TYPE_CHECKING:
    from fastapi import FastAPI

    from todo_service.core.settings import Settings
    from todo_service.infra.tracing.context import Telemetry

logger = logging.getLogger(__name__)

__all__ = [
    "BodyCaptureMiddleware",
    "CORSHeadersMiddleware",
    "MetricsMiddleware",
    "configure_middleware",
    "endpoint_template",
    "get_cors_headers",
]


def configure_middleware(app: FastAPI, settings: Settings, telemetry: Telemetry) -> None:
    """Configure all middleware for the FastAPI application.

    Args:
        app: FastAPI application instance.
        settings: Unified settings (CORS values and body capture toggles).
        telemetry: Metrics recorder for MetricsMiddleware.
    """
    app_settings = settings.app

    if app_settings.capture_bodies:
        app.add_middleware(
            BodyCaptureMiddleware,
            max_body_size=app_settings.max_captured_body_size,
        )

    app.add_middleware(
        CORSHeadersMiddleware,
        allow_origins=app_settings.cors_origins,
        allow_methods=app_settings.cors_allow_methods,
        allow_headers=app_settings.cors_allow_headers,
    )

    app.add_middleware(MetricsMiddleware, telemetry=telemetry)

    logger.info(
        "Middleware configured",
        extra={
            "body_capture": app_settings.capture_bodies,
            "cors_origins": app_settings.cors_origins,
        },
    )
