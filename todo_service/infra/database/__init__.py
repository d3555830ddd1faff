"""Database engine, session and statement formatting."""

from todo_service.infra.database.formatting import format_statement, format_value
from todo_service.infra.database.session import Database, statement_operation

__all__ = ["Database", "format_statement", "format_value", "statement_operation"]
