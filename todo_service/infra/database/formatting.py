"""Render bound parameters into SQL text for span attributes.

The output is diagnostic only: it is attached to spans as
``db.statement.formatted`` and is never executed. Parameters are
substituted as SQL literals so a trace shows the statement as the store
saw it.

Placeholder styles:
- ``?`` positional (qmark, what aiosqlite uses)
- ``$1``, ``$2`` numbered
- ``:name`` named, looked up in a mapping

Placeholders inside quoted literals or quoted identifiers are left alone,
as is any placeholder without a matching value.
"""

from __future__ import annotations

import datetime
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any

NULL = "NULL"


def format_value(value: Any) -> str:
    """Render one bound value as a SQL literal.

    Unknown kinds render as ``<unsupported:TypeName>`` instead of raising.
    """
    if value is None:
        return NULL
    # bool before int: bool is an int subclass
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return f"{value:f}"
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return _quote(bytes(value).decode("utf-8", errors="replace"))
    # datetime before date: datetime is a date subclass
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return _quote(value.isoformat())
    return f"<unsupported:{type(value).__name__}>"


def _quote(text: str) -> str:
    return "'" + text.replace("'", "''") + "'"


def format_statement(statement: str, parameters: Sequence[Any] | Mapping[str, Any] | None) -> str:
    """Substitute parameters into ``statement`` for display.

    Args:
        statement: SQL text with placeholders.
        parameters: Positional sequence (``?`` and ``$N``) or mapping (``:name``).

    Returns:
        The statement with every resolvable placeholder replaced by a literal.

    Example:
        >>> format_statement("SELECT * FROM tasks WHERE id = ? AND title = '?'", (7,))
        "SELECT * FROM tasks WHERE id = 7 AND title = '?'"
    """
    if not parameters:
        return statement

    named = parameters if isinstance(parameters, Mapping) else None
    positional = None if named is not None or isinstance(parameters, (str, bytes)) else list(parameters)

    out: list[str] = []
    quote: str | None = None
    next_positional = 0
    i = 0
    n = len(statement)

    while i < n:
        ch = statement[i]

        if quote is not None:
            # A doubled quote closes and reopens, so toggling handles escapes
            if ch == quote:
                quote = None
            out.append(ch)
            i += 1
            continue

        if ch in ("'", '"'):
            quote = ch
            out.append(ch)
            i += 1
            continue

        if ch == "?" and positional is not None:
            if next_positional < len(positional):
                out.append(format_value(positional[next_positional]))
            else:
                out.append(ch)
            next_positional += 1
            i += 1
            continue

        if ch == "$" and positional is not None:
            j = i + 1
            while j < n and statement[j].isdigit():
                j += 1
            if j > i + 1:
                index = int(statement[i + 1:j]) - 1
                if 0 <= index < len(positional):
                    out.append(format_value(positional[index]))
                else:
                    out.append(statement[i:j])
                i = j
                continue

        if ch == ":" and named is not None:
            prev = statement[i - 1] if i > 0 else ""
            j = i + 1
            if prev != ":" and j < n and (statement[j].isalpha() or statement[j] == "_"):
                while j < n and (statement[j].isalnum() or statement[j] == "_"):
                    j += 1
                name = statement[i + 1:j]
                if name in named:
                    out.append(format_value(named[name]))
                else:
                    out.append(statement[i:j])
                i = j
                continue

        out.append(ch)
        i += 1

    return "".join(out)
