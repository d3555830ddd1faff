"""Tests for rendering bound parameters into SQL text."""
from __future__ import annotations

import datetime
from decimal import Decimal

import pytest

from todo_service.infra.database.formatting import format_statement, format_value


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, "NULL"),
        (True, "TRUE"),
        (False, "FALSE"),
        (42, "42"),
        (-7, "-7"),
        (1.5, "1.500000"),
        (Decimal("10.25"), "10.25"),
        ("buy milk", "'buy milk'"),
        ("it's", "'it''s'"),
        (b"raw", "'raw'"),
        (datetime.datetime(2024, 1, 2, 3, 4, 5), "'2024-01-02T03:04:05'"),
        (datetime.date(2024, 1, 2), "'2024-01-02'"),
        (datetime.time(3, 4, 5), "'03:04:05'"),
    ],
)
def test_format_value_supported_kinds(value: object, expected: str) -> None:
    assert format_value(value) == expected


def test_format_value_unsupported_kind() -> None:
    assert format_value({"a": 1}) == "<unsupported:dict>"
    assert format_value(object()) == "<unsupported:object>"


def test_qmark_placeholders_substituted_in_order() -> None:
    result = format_statement("INSERT INTO tasks (title, completed) VALUES (?, ?)", ("Buy milk", False))
    assert result == "INSERT INTO tasks (title, completed) VALUES ('Buy milk', FALSE)"


def test_placeholder_inside_string_literal_untouched() -> None:
    result = format_statement("SELECT * FROM tasks WHERE title = '?' AND id = ?", (7,))
    assert result == "SELECT * FROM tasks WHERE title = '?' AND id = 7"


def test_escaped_quote_inside_literal_keeps_literal_closed_correctly() -> None:
    result = format_statement("SELECT 'it''s ?' , ?", (1,))
    assert result == "SELECT 'it''s ?' , 1"


def test_value_containing_placeholder_is_not_resubstituted() -> None:
    result = format_statement("UPDATE tasks SET title = ? WHERE id = ?", ("what?", 3))
    assert result == "UPDATE tasks SET title = 'what?' WHERE id = 3"


def test_numbered_placeholders() -> None:
    result = format_statement("SELECT * FROM tasks WHERE id = $2 AND title = $1", ("a", 5))
    assert result == "SELECT * FROM tasks WHERE id = 5 AND title = 'a'"


def test_named_placeholders() -> None:
    result = format_statement(
        "SELECT * FROM tasks WHERE id = :task_id AND completed = :done",
        {"task_id": 9, "done": True},
    )
    assert result == "SELECT * FROM tasks WHERE id = 9 AND completed = TRUE"


def test_named_placeholder_skips_casts_and_missing_names() -> None:
    result = format_statement("SELECT :a::text, :missing", {"a": 1})
    assert result == "SELECT 1::text, :missing"


def test_placeholders_without_values_left_untouched() -> None:
    assert format_statement("SELECT ?, ?", (1,)) == "SELECT 1, ?"
    assert format_statement("SELECT $3", (1,)) == "SELECT $3"


def test_no_parameters_returns_statement_unchanged() -> None:
    statement = "SELECT * FROM tasks WHERE id = ?"
    assert format_statement(statement, None) == statement
    assert format_statement(statement, ()) == statement
