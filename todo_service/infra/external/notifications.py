"""Outbound notification sent after a task is created."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx
from opentelemetry import trace

from todo_service import __version__
from todo_service.infra.metrics.prometheus import notification_requests_total

if TYPE_CHECKING:
    from todo_service.core.settings.notifications import NotificationSettings
    from todo_service.features.tasks.models import Task
    from todo_service.infra.external.base_client import InstrumentedHTTPClient
    from todo_service.infra.tracing.context import Telemetry

logger = logging.getLogger(__name__)

USER_AGENT = f"todo-service/{__version__}"


class TaskNotifier:
    """Tells an external endpoint about each new task.

    Notification is best effort: every failure is recorded on the
    ``external.api.notification`` span and logged, and
    ``notify_task_created`` never raises.
    """

    def __init__(
        self,
        client: InstrumentedHTTPClient,
        settings: NotificationSettings,
        telemetry: Telemetry,
    ) -> None:
        self.client = client
        self.settings = settings
        self.telemetry = telemetry
        self.service = httpx.URL(settings.base_url).host

    async def notify_task_created(self, task: Task) -> None:
        if not self.settings.enabled:
            return

        with self.telemetry.tracer.start_as_current_span(
            "external.api.notification",
            attributes={
                "api.service": self.service,
                "task.id": task.id,
                "task.title": task.title,
            },
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            try:
                request = self.client.build_request(
                    "GET",
                    f"{self.settings.base_url.rstrip('/')}/get",
                    params={"task_id": str(task.id), "task_title": task.title},
                    headers={
                        "X-Task-ID": str(task.id),
                        "X-Task-Title": task.title.encode("utf-8"),
                        "User-Agent": USER_AGENT,
                    },
                )
                response = await self.client.send_with_body_capture(request)
            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                notification_requests_total.labels(outcome="failed").inc()
                logger.error(
                    f"External API call failed: {e}",
                    extra={"task_id": task.id, "error_type": type(e).__name__},
                )
                return

            if response.is_success:
                notification_requests_total.labels(outcome="success").inc()
                logger.info(
                    "Successfully notified external API",
                    extra={"task_id": task.id, "status_code": response.status_code},
                )
            else:
                notification_requests_total.labels(outcome="http_error").inc()
                logger.warning(
                    "External API returned non-success status",
                    extra={"task_id": task.id, "status_code": response.status_code},
                )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.close()
