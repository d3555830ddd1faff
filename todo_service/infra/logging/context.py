"""Context management for structured logging.

Provides automatic context injection into log records using contextvars,
so request-scoped fields (operation, task id, method, path) appear in every
log message emitted while handling a request without explicit passing.
Each asyncio task works on its own copy of the context.
"""

from __future__ import annotations

import logging
from contextvars import ContextVar
from typing import Any

from opentelemetry import trace

_log_context: ContextVar[dict[str, Any]] = ContextVar("log_context", default={})


def set_log_context(**kwargs: Any) -> None:
    """Set logging context for current async task/thread.

    All subsequent log calls in this context will automatically include
    these fields in the log record.

    Example:
        ```python
        set_log_context(method="POST", path="/tasks")
        logger.info("Creating task")  # Includes method and path
        ```
    """
    current = _log_context.get().copy()
    current.update(kwargs)
    _log_context.set(current)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    return _log_context.get().copy()


def clear_log_context() -> None:
    """Clear all logging context for current async task/thread."""
    _log_context.set({})


def remove_from_log_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    current = _log_context.get().copy()
    for key in keys:
        current.pop(key, None)
    _log_context.set(current)


class ContextInjectingFilter(logging.Filter):
    """Logging filter that injects the log context and trace ids into LogRecord.

    Attached to the root QueueHandler so it runs in the thread that emitted
    the record. Records are formatted later on the QueueListener thread, where
    neither the contextvars context nor the active span is visible, so both
    are copied onto the record here.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)

        ctx = trace.get_current_span().get_span_context()
        if ctx.is_valid and not hasattr(record, "trace_id"):
            record.trace_id = format(ctx.trace_id, "032x")
            record.span_id = format(ctx.span_id, "016x")
            record.trace_flags = f"{ctx.trace_flags:02x}"

        return True
