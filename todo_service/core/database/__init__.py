"""Model base and repository-level database errors."""

from todo_service.core.database.base import Base
from todo_service.core.database.exceptions import NotFoundError, RepositoryError

__all__ = ["Base", "NotFoundError", "RepositoryError"]
