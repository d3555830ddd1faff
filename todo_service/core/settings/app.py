"""Application settings for FastAPI configuration."""

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Environment = Literal["development", "staging", "production", "test"]


class AppSettings(BaseSettings):
    """FastAPI application settings.

    Environment variables use APP_ prefix.
    Example: APP_DEBUG=true, APP_PORT=8082
    """

    # Service identity
    service_name: str = Field(
        default="todo-service",
        min_length=1,
        max_length=100,
        pattern=r"^[a-z0-9]+(-[a-z0-9]+)*$",
        description="Service name for logging/tracing (lowercase, hyphens allowed)",
    )
    title: str = Field(
        default="Todo Service API",
        min_length=1,
        max_length=200,
        description="API title displayed in documentation",
    )
    version: str = Field(
        default="1.0.0",
        min_length=1,
        max_length=50,
        pattern=r"^\d+\.\d+\.\d+(-[a-zA-Z0-9]+)?$",
        description="API version (semver format)",
    )
    environment: Environment = Field(
        default="development", description="Environment: development|staging|production|test",
    )

    # FastAPI toggles
    debug: bool = Field(default=False, description="Enable debug mode")
    docs_url: str | None = Field(default="/docs", description="Swagger UI path")
    openapi_url: str | None = Field(default="/openapi.json", description="OpenAPI schema path")

    # Server configuration
    host: str = Field(
        default="0.0.0.0", min_length=1, max_length=255, description="Server bind host",
    )
    port: int = Field(default=8082, ge=1, le=65535, description="Server port")

    # CORS configuration
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Value(s) sent in Access-Control-Allow-Origin",
    )
    cors_allow_methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "DELETE", "OPTIONS"],
        description="Allowed HTTP methods",
    )
    cors_allow_headers: list[str] = Field(
        default_factory=lambda: ["Content-Type"], description="Allowed headers",
    )

    # Body capture configuration
    capture_bodies: bool = Field(
        default=True,
        description="Attach request/response bodies to the server span as events",
    )
    max_captured_body_size: int | None = Field(
        default=None,
        ge=0,
        description="Truncate captured body text to this many bytes (None = unlimited)",
    )

    @model_validator(mode="after")
    def validate_production_settings(self) -> AppSettings:
        """Validate settings for production environment."""
        if self.environment == "production" and self.debug:
            msg = "Debug mode cannot be enabled in production environment"
            raise ValueError(msg)
        return self

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
