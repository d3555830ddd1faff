"""Task store connection and pool settings."""

from __future__ import annotations

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url


class DatabaseSettings(BaseSettings):
    """SQLite (aiosqlite) connection and pool settings.

    Environment variables use DB_ prefix.
    Example: DB_URL=sqlite+aiosqlite:///./tasks.db, DB_POOL_SIZE=5
    """

    url: str = Field(
        default="sqlite+aiosqlite:///./tasks.db",
        description="SQLAlchemy async database URL",
    )

    # ─────────────────────────────────────────────────────
    # Pool
    # ─────────────────────────────────────────────────────
    pool_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Connections kept open (idle) in the pool",
    )
    max_overflow: int = Field(
        default=5,
        ge=0,
        le=100,
        description="Extra connections allowed above pool_size under load",
    )
    pool_timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Seconds to wait for a free connection before failing",
    )

    # ─────────────────────────────────────────────────────
    # Diagnostics
    # ─────────────────────────────────────────────────────
    echo: bool = Field(default=False, description="Log every statement via SQLAlchemy")
    format_statements: bool = Field(
        default=True,
        description="Attach db.statement.formatted (values substituted) to the active span",
    )
    simulated_failure_title: str | None = Field(
        default=None,
        description="Creating a task with this title fails with a simulated store error",
    )

    @computed_field
    @property
    def is_memory(self) -> bool:
        """True for in-memory SQLite, which cannot use a sized pool."""
        return make_url(self.url).database in (None, "", ":memory:")

    @computed_field
    @property
    def max_connections(self) -> int:
        """Upper bound on concurrently open connections."""
        return self.pool_size + self.max_overflow

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
