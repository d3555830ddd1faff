"""LRU-cached settings loaders.

Settings are loaded and validated once, then cached for the lifetime of the
process.

Testing:
    In tests, clear the cache to force reload:
    get_app_settings.cache_clear()

    Or build an instance with explicit values:
    settings = AppSettings(debug=True, ...)
"""

from __future__ import annotations

from functools import lru_cache

from .app import AppSettings
from .database import DatabaseSettings
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .otel import OtelSettings


@lru_cache(maxsize=1)
def get_app_settings() -> AppSettings:
    """Get cached application settings."""
    return AppSettings()


@lru_cache(maxsize=1)
def get_db_settings() -> DatabaseSettings:
    """Get cached database settings."""
    return DatabaseSettings()


@lru_cache(maxsize=1)
def get_logging_settings() -> LoggingSettings:
    """Get cached logging settings."""
    return LoggingSettings()


@lru_cache(maxsize=1)
def get_notification_settings() -> NotificationSettings:
    """Get cached outbound notification settings."""
    return NotificationSettings()


@lru_cache(maxsize=1)
def get_otel_settings() -> OtelSettings:
    """Get cached OpenTelemetry settings."""
    return OtelSettings()


def clear_settings_cache() -> None:
    """Drop every cached settings instance (tests, reloads)."""
    from .unified import get_settings

    get_app_settings.cache_clear()
    get_db_settings.cache_clear()
    get_logging_settings.cache_clear()
    get_notification_settings.cache_clear()
    get_otel_settings.cache_clear()
    get_settings.cache_clear()
