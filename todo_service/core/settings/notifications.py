"""Outbound task notification settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationSettings(BaseSettings):
    """External notification endpoint called after a task is created.

    Environment variables use NOTIFY_ prefix.
    """

    enabled: bool = Field(default=True, description="Send a notification per created task")
    base_url: str = Field(
        default="https://httpbin.org",
        description="Base URL of the notification endpoint",
    )
    timeout: float = Field(
        default=10.0,
        gt=0,
        le=120,
        description="Per-request timeout in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
