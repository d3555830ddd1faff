"""Modular Pydantic Settings v2 configuration.

One settings model per domain (app/db/logging/notifications/otel), each
reading its own environment prefix, loaded once through LRU-cached loaders:

    from todo_service.core.settings import get_db_settings

Or all domains at once:

    from todo_service.core.settings import get_settings

    settings = get_settings()
    print(settings.otel.exporter_otlp_endpoint)

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. Environment variables
    3. .env file
"""

from __future__ import annotations

from .app import AppSettings
from .database import DatabaseSettings
from .loader import (
    clear_settings_cache,
    get_app_settings,
    get_db_settings,
    get_logging_settings,
    get_notification_settings,
    get_otel_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .otel import OtelSettings
from .unified import Settings, get_settings

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "LoggingSettings",
    "NotificationSettings",
    "OtelSettings",
    "Settings",
    "clear_settings_cache",
    "get_app_settings",
    "get_db_settings",
    "get_logging_settings",
    "get_notification_settings",
    "get_otel_settings",
    "get_settings",
]
