"""Global exception handlers for FastAPI application.

Every error response is an RFC 7807 Problem Details document
(``type``, ``title``, ``status``, ``detail``, ``instance``).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from todo_service.app.middleware.cors import get_cors_headers
from todo_service.core.exceptions import AppException

if TYPE_CHECKING:
    from todo_service.core.settings import AppSettings

logger = logging.getLogger(__name__)

PROBLEM_JSON = "application/problem+json"


def _create_problem_detail(
    status_code: int,
    detail: str,
    type_: str = "about:blank",
    title: str | None = None,
    instance: str | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Create RFC 7807 Problem Details response body."""
    problem: dict[str, Any] = {
        "type": type_,
        "title": title or AppException._default_title(status_code),
        "status": status_code,
        "detail": detail,
    }
    if instance is not None:
        problem["instance"] = instance
    if extra:
        problem.update(extra)
    return problem


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom application exceptions.

    Converts AppException instances into RFC 7807 Problem Details responses.
    """
    logger.warning(
        "Application exception occurred",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": exc.type,
            "status_code": exc.status_code,
            "detail": exc.detail,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_create_problem_detail(
            status_code=exc.status_code,
            detail=exc.detail,
            type_=exc.type,
            title=exc.title,
            instance=exc.instance or request.url.path,
            extra=exc.extra,
        ),
        media_type=PROBLEM_JSON,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle framework HTTP errors (unknown path, method not allowed)."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_create_problem_detail(
            status_code=exc.status_code,
            detail=str(exc.detail),
            instance=request.url.path,
        ),
        headers=getattr(exc, "headers", None),
        media_type=PROBLEM_JSON,
    )


def make_generic_exception_handler(app_settings: AppSettings):
    """Build the catch-all handler.

    Its response is produced by Starlette's outermost error middleware,
    outside CORSHeadersMiddleware, so it adds the CORS headers itself.
    """
    cors_headers = get_cors_headers(
        app_settings.cors_origins,
        app_settings.cors_allow_methods,
        app_settings.cors_allow_headers,
    )

    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Log the full traceback and return a generic 500."""
        logger.exception(
            "Unexpected exception occurred",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__,
                "exception_message": str(exc),
            },
        )

        # Don't expose internal details
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_create_problem_detail(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="An unexpected error occurred while processing your request",
                type_="internal-error",
                title="Internal Server Error",
                instance=request.url.path,
            ),
            headers=cors_headers,
            media_type=PROBLEM_JSON,
        )

    return generic_exception_handler


def configure_exception_handlers(app: FastAPI, app_settings: AppSettings) -> None:
    """Register the handlers that turn exceptions into Problem Details.

    Example:
        app = FastAPI()
        configure_exception_handlers(app, get_app_settings())
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, make_generic_exception_handler(app_settings))

    logger.info("Exception handlers configured")
