"""Logging configuration settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingSettings(BaseSettings):
    """Structured logging configuration.

    Environment variables use LOG_ prefix.
    Example: LOG_LEVEL=INFO, LOG_JSON=true, LOG_FILE_PATH=logs/todo.jsonl
    """

    # ──────────────────────────────────────────────────────────────
    # Basic configuration
    # ──────────────────────────────────────────────────────────────

    service_name: str = Field(
        default="todo-service",
        description="Service name to include in log records (static field in JSON)",
    )

    level: LogLevel = Field(
        default="INFO",
        description="Root logger level (DEBUG|INFO|WARNING|ERROR|CRITICAL)",
    )

    json_logs: bool = Field(
        default=True,
        alias="json",
        description="Enable JSON Lines (JSONL) formatted structured logs",
    )

    # ──────────────────────────────────────────────────────────────
    # Handlers
    # ──────────────────────────────────────────────────────────────

    console_enabled: bool = Field(
        default=True,
        description="Enable console/stderr logging",
    )

    file_path: Path | None = Field(
        default=None,
        description="Path to a rotating log file. None disables file logging.",
    )

    file_max_bytes: int = Field(
        default=10_485_760,  # 10 MiB
        ge=1024,
        le=1_073_741_824,
        description="Maximum log file size in bytes before rotation",
    )

    file_backup_count: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Number of rotated log files to keep",
    )

    # ──────────────────────────────────────────────────────────────
    # Context and export
    # ──────────────────────────────────────────────────────────────

    include_context: bool = Field(
        default=True,
        description="Enable automatic context injection into log records via ContextInjectingFilter",
    )

    otel_bridge: bool = Field(
        default=True,
        description="Forward log records to the OpenTelemetry log pipeline",
    )

    capture_warnings: bool = Field(
        default=True,
        description="Forward Python `warnings` module output to the logging system.",
    )

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: str | None) -> str | None:
        """Normalize log level to uppercase."""
        if isinstance(v, str):
            return v.upper()
        return v

    def to_logging_kwargs(self) -> dict[str, Any]:
        """Return kwargs suitable for configure_logging(...)."""
        return {
            "service_name": self.service_name,
            "log_level": self.level,
            "json_logs": self.json_logs,
            "console_enabled": self.console_enabled,
            "file_path": str(self.file_path) if self.file_path else None,
            "file_max_bytes": self.file_max_bytes,
            "file_backup_count": self.file_backup_count,
            "include_context": self.include_context,
            "capture_warnings": self.capture_warnings,
        }

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        env_ignore_empty=True,
    )
