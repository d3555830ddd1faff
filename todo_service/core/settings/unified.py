"""Unified settings composition for convenient access.

Usage:
    from todo_service.core.settings import get_settings

    settings = get_settings()
    print(settings.app.port)
    print(settings.db.pool_size)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache

from .app import AppSettings
from .database import DatabaseSettings
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .otel import OtelSettings


@dataclass(frozen=True)
class Settings:
    """All settings domains in one object.

    Each nested model still reads its own env prefix, so
    ``Settings(db=DatabaseSettings(url=...))`` overrides a single domain.
    """

    app: AppSettings = field(default_factory=AppSettings)
    db: DatabaseSettings = field(default_factory=DatabaseSettings)
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    notifications: NotificationSettings = field(default_factory=NotificationSettings)
    otel: OtelSettings = field(default_factory=OtelSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached unified settings built from the per-domain loaders."""
    from .loader import (
        get_app_settings,
        get_db_settings,
        get_logging_settings,
        get_notification_settings,
        get_otel_settings,
    )

    return Settings(
        app=get_app_settings(),
        db=get_db_settings(),
        logging=get_logging_settings(),
        notifications=get_notification_settings(),
        otel=get_otel_settings(),
    )
