"""Custom logging formatters with trace correlation."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any

from opentelemetry import trace

_SKIP_KEYS = frozenset({
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "message",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "exc_info",
    "exc_text",
    "stack_info",
    "taskName",
})


class JSONFormatter(logging.Formatter):
    """Structured JSON Lines (JSONL) formatter with UTC timestamps.

    One JSON object per line carrying level, logger, message, an ISO 8601
    UTC timestamp, OpenTelemetry correlation (``trace_id``, ``span_id``,
    ``trace_flags``), static fields such as the service name, and any extra
    fields attached to the record (log context, ``extra=`` kwargs).

    Example output:
        ```json
        {"level": "INFO", "logger": "todo_service.features.tasks.router", "message": "Task created", "timestamp": "2026-01-01T00:00:00.123Z", "trace_id": "4bf9...", "span_id": "00f0...", "service": "todo-service", "task_id": 7}
        ```
    """

    def __init__(
        self,
        fmt_keys: dict[str, str] | None = None,
        static: dict[str, Any] | None = None,
    ) -> None:
        """Initialize JSON formatter.

        Args:
            fmt_keys: Mapping of output keys to LogRecord attributes.
                Default: {"level": "levelname", "logger": "name", "message": "message"}
            static: Static fields to include in every log record (e.g., {"service": "api"}).
        """
        super().__init__()
        self.fmt_keys = fmt_keys or {
            "level": "levelname",
            "logger": "name",
            "message": "message",
        }
        self.static = static or {}

    def format(self, record: logging.LogRecord) -> str:
        record.message = record.getMessage()
        data: dict[str, Any] = {
            k: getattr(record, v, None) for k, v in self.fmt_keys.items()
        }

        data["timestamp"] = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        # Filled in by ContextInjectingFilter when formatted off-thread
        if not hasattr(record, "trace_id"):
            ctx = trace.get_current_span().get_span_context()
            if ctx.is_valid:
                data["trace_id"] = format(ctx.trace_id, "032x")
                data["span_id"] = format(ctx.span_id, "016x")
                data["trace_flags"] = f"{ctx.trace_flags:02x}"

        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info).replace("\n", "\\n")

        if record.stack_info:
            data["stack_trace"] = record.stack_info.replace("\n", "\\n")

        if self.static:
            data.update(self.static)

        for key, value in record.__dict__.items():
            if key not in _SKIP_KEYS and key not in data:
                data[key] = value

        return json.dumps(data, ensure_ascii=False, default=str)
