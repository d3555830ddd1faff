"""Structured logging infrastructure.

- setup_logging()/configure_logging(): dictConfig + QueueListener setup
- attach_otel_handler(): Export log records through the OpenTelemetry pipeline
- set_log_context(): Request-scoped fields injected into every record
- JSONFormatter: JSON Lines output with trace correlation
"""

from todo_service.infra.logging.config import (
    attach_otel_handler,
    configure_logging,
    detach_otel_handler,
    setup_logging,
    shutdown,
)
from todo_service.infra.logging.context import (
    ContextInjectingFilter,
    clear_log_context,
    get_log_context,
    remove_from_log_context,
    set_log_context,
)
from todo_service.infra.logging.formatters import JSONFormatter

__all__ = [
    "ContextInjectingFilter",
    "JSONFormatter",
    "attach_otel_handler",
    "clear_log_context",
    "configure_logging",
    "detach_otel_handler",
    "get_log_context",
    "remove_from_log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
