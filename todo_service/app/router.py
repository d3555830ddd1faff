"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from todo_service.features.tasks.router import router as tasks_router
from todo_service.infra.metrics.prometheus import REGISTRY

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)

metrics_router = APIRouter(tags=["observability"])


@metrics_router.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    """Expose Prometheus metrics in text exposition format.

    Includes HTTP request counts/latency (with trace exemplars), database
    query latency and pool usage, outbound notification outcomes and span
    export health.
    """
    return Response(
        content=generate_latest(REGISTRY),
        media_type=CONTENT_TYPE_LATEST,
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


def setup_routers(app: FastAPI) -> None:
    """Register all routers with the application."""
    app.include_router(tasks_router)
    app.include_router(metrics_router)
    logger.debug("Routers registered", extra={"routes": len(app.routes)})
