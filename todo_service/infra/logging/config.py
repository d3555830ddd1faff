"""Logging configuration setup.

Provides logging configuration using:
- dictConfig for the root logger, formatters and filters
- QueueHandler + QueueListener for non-blocking console/file I/O
- ContextInjectingFilter for automatic context and trace propagation
- An OpenTelemetry LoggingHandler that exports records with traces and metrics
"""

from __future__ import annotations

import atexit
import logging
import logging.config
from logging.handlers import QueueHandler, QueueListener, RotatingFileHandler
from pathlib import Path
from queue import Queue
from typing import TYPE_CHECKING, Any

from todo_service.infra.logging.context import ContextInjectingFilter
from todo_service.infra.logging.formatters import JSONFormatter

if TYPE_CHECKING:
    from todo_service.core.settings.logs import LoggingSettings

_log_queue: Queue[logging.LogRecord] | None = None
_listener: QueueListener | None = None
_otel_handler: logging.Handler | None = None
_atexit_registered = False
_LOGGING_INITIALIZED = False

logger = logging.getLogger(__name__)

TEXT_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"
TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def shutdown() -> None:
    """Stop the QueueListener, flushing pending records, and detach the OTel handler.

    Registered with atexit on first configuration; safe to call repeatedly.
    """
    global _log_queue, _listener

    if _listener is not None:
        # stop() drains the queue before returning
        _listener.stop()
        _listener = None
    _log_queue = None

    detach_otel_handler()


def setup_logging(
    log_settings: LoggingSettings | None = None,
    *,
    force: bool = False,
    **configure_kwargs: Any,
) -> None:
    """Ensure logging is configured once across entrypoints.

    Args:
        log_settings: Optional logging settings instance. If omitted, settings
            are loaded via get_logging_settings().
        force: Reconfigure logging even if it was already initialized.
        **configure_kwargs: Explicit overrides for configure_logging().
    """
    global _LOGGING_INITIALIZED

    if _LOGGING_INITIALIZED and not force:
        return

    settings_obj = log_settings
    if settings_obj is None:
        from todo_service.core.settings import get_logging_settings

        settings_obj = get_logging_settings()

    log_config = {**settings_obj.to_logging_kwargs(), **configure_kwargs}
    configure_logging(**log_config)
    _LOGGING_INITIALIZED = True


def configure_logging(
    service_name: str = "todo-service",
    log_level: str = "INFO",
    file_path: str | Path | None = None,
    json_logs: bool = True,
    console_enabled: bool = True,
    include_context: bool = True,
    capture_warnings: bool = True,
    file_max_bytes: int = 10 * 1024 * 1024,
    file_backup_count: int = 5,
) -> None:
    """Configure logging with dictConfig and the QueueHandler pattern.

    All handlers hang off the root logger; application loggers propagate
    up. Console and file handlers run on a QueueListener thread so request
    handling never blocks on log I/O.

    Args:
        service_name: Static ``service`` field on every JSON record.
        log_level: Root logger level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file_path: Path to a rotating log file. None disables file logging.
        json_logs: Enable JSONL (JSON Lines) structured logging.
        console_enabled: Enable console/stderr logging.
        include_context: Enable ContextInjectingFilter for auto context.
        capture_warnings: Forward Python warnings to logging system.
        file_max_bytes: Maximum log file size before rotation.
        file_backup_count: Number of rotated log files to keep.

    Example:
        from todo_service.core.settings import get_logging_settings
        configure_logging(**get_logging_settings().to_logging_kwargs())
    """
    global _log_queue, _listener, _atexit_registered

    # Reconfiguring replaces the previous listener
    if _listener is not None:
        _listener.stop()
        _listener = None

    if capture_warnings:
        logging.captureWarnings(True)

    path = Path(file_path) if file_path else None
    if path:
        path.parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            # Handlers are created below and attached to the QueueListener
            "root": {
                "level": log_level.upper(),
                "handlers": [],
            },
        },
    )

    handlers: list[logging.Handler] = []
    if console_enabled:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(_build_formatter(json_logs, service_name))
        handlers.append(console_handler)

    if path:
        file_handler = RotatingFileHandler(
            path,
            maxBytes=file_max_bytes,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(_build_formatter(json_logs, service_name))
        handlers.append(file_handler)

    root = logging.getLogger()
    if handlers:
        _log_queue = Queue()
        _listener = QueueListener(_log_queue, *handlers, respect_handler_level=True)
        _listener.start()
        queue_handler = QueueHandler(_log_queue)
        # Handler filters run in the emitting thread, logger filters skip propagated records
        if include_context:
            queue_handler.addFilter(ContextInjectingFilter())
        root.addHandler(queue_handler)
        if not _atexit_registered:
            atexit.register(shutdown)
            _atexit_registered = True

    # Root handlers were reset by dictConfig; keep the OTel bridge attached
    if _otel_handler is not None:
        root.addHandler(_otel_handler)

    # Quiet chatty libraries
    for name in ("httpx", "httpcore", "aiosqlite", "sqlalchemy.engine.Engine"):
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))


def _build_formatter(json_logs: bool, service_name: str) -> logging.Formatter:
    if json_logs:
        return JSONFormatter(
            fmt_keys={"level": "levelname", "logger": "name", "message": "message"},
            static={"service": service_name},
        )
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt=TEXT_DATEFMT)


def attach_otel_handler(logger_provider: Any, level: int = logging.NOTSET) -> logging.Handler:
    """Forward root logger records to the OpenTelemetry log pipeline.

    The handler runs in the emitting thread, so each exported record carries
    the trace and span ids of the span active when it was logged. Replaces
    any previously attached bridge.

    Args:
        logger_provider: SDK LoggerProvider from the Telemetry object.
        level: Minimum level to export.

    Returns:
        The attached handler.
    """
    global _otel_handler

    from opentelemetry.sdk._logs import LoggingHandler

    detach_otel_handler()
    _otel_handler = LoggingHandler(level=level, logger_provider=logger_provider)
    logging.getLogger().addHandler(_otel_handler)
    logger.debug("OpenTelemetry log bridge attached")
    return _otel_handler


def detach_otel_handler() -> None:
    """Remove the OpenTelemetry log bridge from the root logger, if attached."""
    global _otel_handler

    if _otel_handler is not None:
        logging.getLogger().removeHandler(_otel_handler)
        _otel_handler = None
