"""Custom exception classes for the application."""

from __future__ import annotations

from typing import Any


class AppException(Exception):
    """Base application exception.

    All HTTP-facing errors inherit from this class and are rendered as
    RFC 7807 Problem Details by the global exception handlers.

    Attributes:
        status_code: HTTP status code for the error.
        detail: Human-readable error message.
        type: Error type identifier (used in RFC 7807 problem details).
        title: Short, human-readable summary of the problem type.
        instance: URI reference that identifies the specific occurrence of the problem.
        extra: Additional context-specific information about the error.

    Example:
        raise AppException(
            status_code=404,
            detail="Task with id=7 not found",
            type="task-not-found",
            instance="/tasks/7",
            extra={"task_id": 7},
        )
    """

    def __init__(
        self,
        status_code: int,
        detail: str,
        type: str = "about:blank",
        title: str | None = None,
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application exception.

        Args:
            status_code: HTTP status code.
            detail: Human-readable error message.
            type: Error type identifier.
            title: Short summary of the problem type.
            instance: URI reference identifying this specific occurrence.
            extra: Additional context about the error.
        """
        self.status_code = status_code
        self.detail = detail
        self.type = type
        self.title = title or self._default_title(status_code)
        self.instance = instance
        self.extra = extra or {}
        super().__init__(detail)

    @staticmethod
    def _default_title(status_code: int) -> str:
        """Get default title for HTTP status code."""
        titles = {
            400: "Bad Request",
            404: "Not Found",
            405: "Method Not Allowed",
            500: "Internal Server Error",
            503: "Service Unavailable",
        }
        return titles.get(status_code, "Error")


class ValidationException(AppException):
    """Request failed structural validation before reaching the store.

    Covers malformed JSON, a missing or empty title and non-numeric ids.

    Example:
        raise ValidationException(
            detail="Title is required",
            extra={"field": "title"},
        )
    """

    def __init__(
        self,
        detail: str,
        type: str = "validation-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=400,
            detail=detail,
            type=type,
            title="Bad Request",
            instance=instance,
            extra=extra,
        )


class NotFoundException(AppException):
    """Exception raised when a resource is not found."""

    def __init__(
        self,
        detail: str,
        type: str = "not-found",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=404,
            detail=detail,
            type=type,
            title="Not Found",
            instance=instance,
            extra=extra,
        )


class InternalServerException(AppException):
    """Unexpected failure (store connectivity, constraint violation, ...).

    The process keeps serving other requests; the error is logged and
    recorded on the active span where it is raised.
    """

    def __init__(
        self,
        detail: str = "Internal server error",
        type: str = "internal-error",
        instance: str | None = None,
        extra: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            status_code=500,
            detail=detail,
            type=type,
            title="Internal Server Error",
            instance=instance,
            extra=extra,
        )
