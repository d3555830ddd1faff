"""Database engine and session management with aiosqlite.

``Database`` owns one async engine and its session factory. Engine events
feed the tracing and metrics pipelines:
- before_cursor_execute: ``db.statement`` and ``db.statement.formatted``
  on the active span
- after_cursor_execute: query latency in Prometheus, linked to the trace
- pool checkout/checkin: connections currently in use
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from todo_service.core.database import Base
from todo_service.core.database.exceptions import RepositoryError
from todo_service.infra.database.formatting import format_statement
from todo_service.infra.metrics.prometheus import (
    database_pool_checkedout,
    database_pool_max_overflow,
    database_pool_size,
    database_query_duration_seconds,
)
from todo_service.infra.tracing.context import Telemetry

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from todo_service.core.settings.database import DatabaseSettings

logger = logging.getLogger(__name__)

_OPERATIONS = ("SELECT", "INSERT", "UPDATE", "DELETE", "BEGIN", "COMMIT", "ROLLBACK", "CREATE", "PRAGMA")


def statement_operation(statement: str | None) -> str:
    """Leading SQL keyword of a statement, e.g. "SELECT * FROM..." -> "SELECT"."""
    if statement:
        statement_upper = statement.lstrip().upper()
        for operation in _OPERATIONS:
            if statement_upper.startswith(operation):
                return operation
    return "UNKNOWN"


class Database:
    """Async engine, session factory and the instrumentation bound to them.

    Example:
        database = Database(get_db_settings(), telemetry)
        await database.initialize()
        async with database.session() as session:
            ...
        await database.close()
    """

    def __init__(
        self,
        settings: DatabaseSettings,
        telemetry: Telemetry | None = None,
        *,
        instrument: bool = True,
    ) -> None:
        self.settings = settings
        self.telemetry = telemetry or Telemetry.noop()

        self.engine = create_async_engine(settings.url, **self._engine_kwargs())
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

        self._instrumented = False
        self._register_listeners()
        if instrument:
            self._instrument()

    def _engine_kwargs(self) -> dict[str, Any]:
        kwargs: dict[str, Any] = {"echo": self.settings.echo}
        # In-memory SQLite runs on a single shared connection, no sized pool
        if not self.settings.is_memory:
            kwargs.update(
                pool_size=self.settings.pool_size,
                max_overflow=self.settings.max_overflow,
                pool_timeout=self.settings.pool_timeout,
                pool_pre_ping=True,
            )
        return kwargs

    def _instrument(self) -> None:
        from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

        instrumentor = SQLAlchemyInstrumentor()
        # The instrumentor is a process-wide singleton bound to one engine at a time
        if instrumentor.is_instrumented_by_opentelemetry:
            instrumentor.uninstrument()
        instrumentor.instrument(
            engine=self.engine.sync_engine,
            tracer_provider=self.telemetry.tracer_provider,
        )
        self._instrumented = True
        logger.debug("SQLAlchemy instrumentation enabled")

    def _register_listeners(self) -> None:
        sync_engine = self.engine.sync_engine
        event.listen(sync_engine, "before_cursor_execute", self._before_cursor_execute)
        event.listen(sync_engine, "after_cursor_execute", self._after_cursor_execute)
        event.listen(sync_engine.pool, "checkout", self._receive_checkout)
        event.listen(sync_engine.pool, "checkin", self._receive_checkin)

    def _before_cursor_execute(
        self, conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool,
    ) -> None:
        """Record query start time and annotate the active span."""
        _ = conn, cursor
        context._query_start_time = time.perf_counter()

        span = trace.get_current_span()
        if not span.is_recording():
            return
        span.set_attribute("db.statement", statement)
        if self.settings.format_statements and not executemany:
            span.set_attribute("db.statement.formatted", format_statement(statement, parameters))

    def _after_cursor_execute(
        self, conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool,
    ) -> None:
        """Record query duration and link to current trace via exemplar."""
        _ = conn, cursor, parameters, executemany
        start = getattr(context, "_query_start_time", None)
        if start is None:
            return
        duration = time.perf_counter() - start
        histogram = database_query_duration_seconds.labels(operation=statement_operation(statement))

        ctx = trace.get_current_span().get_span_context()
        if ctx.is_valid:
            histogram.observe(duration, exemplar={"trace_id": format(ctx.trace_id, "032x")})
        else:
            histogram.observe(duration)

    def _receive_checkout(self, dbapi_conn: Any, connection_record: Any, connection_proxy: Any) -> None:
        _ = dbapi_conn, connection_record, connection_proxy
        database_pool_checkedout.inc()

    def _receive_checkin(self, dbapi_conn: Any, connection_record: Any) -> None:
        _ = dbapi_conn, connection_record
        database_pool_checkedout.dec()

    async def initialize(self) -> None:
        """Verify the store is reachable and create the schema.

        Raises:
            RepositoryError: If the store cannot be reached or the schema
                cannot be created. Startup must abort.
        """
        logger.info(
            "Initializing database",
            extra={"url": self.engine.url.render_as_string(hide_password=True)},
        )
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.run_sync(Base.metadata.create_all)
        except Exception as e:
            logger.error(
                "Failed to initialize database",
                extra={"url": self.engine.url.render_as_string(hide_password=True), "error": str(e)},
            )
            msg = "Database initialization failed"
            raise RepositoryError(msg, {"error": str(e)}) from e

        if not self.settings.is_memory:
            database_pool_size.set(self.settings.pool_size)
            database_pool_max_overflow.set(self.settings.max_overflow)
        logger.info(
            "Database ready",
            extra={
                "pool_size": self.settings.pool_size,
                "max_overflow": self.settings.max_overflow,
                "max_connections": self.settings.max_connections,
            },
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """Get an async session that is closed on exit."""
        async with self.session_factory() as session:
            yield session

    async def close(self) -> None:
        """Dispose of the engine and release the instrumentation."""
        logger.info("Closing database connection")
        if self._instrumented:
            from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

            SQLAlchemyInstrumentor().uninstrument()
            self._instrumented = False
        await self.engine.dispose()
        logger.info("Database connection closed")
