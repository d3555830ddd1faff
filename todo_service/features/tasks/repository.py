"""Repository for the tasks feature.

Every operation runs inside its own ``db.*`` span. The statement itself is
traced as a child span by the SQLAlchemy instrumentation, and the engine
listeners attach the rendered statement to the repository span.
"""

from __future__ import annotations

import logging
import traceback
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from sqlalchemy import delete, insert, select, update

from todo_service.core.database.exceptions import NotFoundError, RepositoryError
from todo_service.features.tasks.models import Task
from todo_service.infra.tracing.context import Telemetry

if TYPE_CHECKING:
    from collections.abc import Iterator

    from opentelemetry.trace import Span

    from todo_service.infra.database import Database

logger = logging.getLogger(__name__)


class TaskRepository:
    """Task persistence with one span per operation.

    Outcomes:
        - ``NotFoundError`` when delete/complete matched no row. The span is
          not marked as failed.
        - ``RepositoryError`` for any other failure, recorded on the span
          (exception event plus error status).
    """

    def __init__(self, database: Database, telemetry: Telemetry | None = None) -> None:
        self.database = database
        self.telemetry = telemetry or database.telemetry
        self.simulated_failure_title = database.settings.simulated_failure_title

    @contextmanager
    def _span(self, name: str, operation: str, **attributes: Any) -> Iterator[Span]:
        with self.telemetry.tracer.start_as_current_span(
            name,
            attributes={"db.operation": operation, **attributes},
            record_exception=False,
            set_status_on_exception=False,
        ) as span:
            try:
                yield span
            except RepositoryError:
                # NotFoundError is an outcome; other RepositoryErrors are recorded where raised
                raise
            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error(
                    f"Task store operation failed: {e}",
                    extra={"db_operation": operation, "error_type": type(e).__name__},
                )
                msg = f"{operation} failed"
                raise RepositoryError(msg, {"error": str(e)}) from e

    async def list_tasks(self) -> list[Task]:
        """All tasks, newest first. Empty list when there are none."""
        with self._span("db.list_tasks", "select_all_tasks") as span:
            stmt = select(Task).order_by(Task.created_at.desc(), Task.id.desc())
            async with self.database.session() as session:
                result = await session.execute(stmt)
                tasks = list(result.scalars().all())
            span.set_attribute("db.rows_returned", len(tasks))
            return tasks

    async def create_task(self, title: str) -> Task:
        """Insert a task and return it with its store-assigned id and timestamp."""
        with self._span("db.create_task", "insert_task", **{"task.title": title}) as span:
            if self.simulated_failure_title is not None and title == self.simulated_failure_title:
                raise self._simulated_failure(span, title)

            stmt = insert(Task).values(title=title).returning(Task)
            async with self.database.session() as session:
                result = await session.execute(stmt)
                task = result.scalar_one()
                await session.commit()
            span.set_attribute("task.id", task.id)
            return task

    async def delete_task(self, task_id: int) -> None:
        """Delete a task.

        Raises:
            NotFoundError: No task has this id.
        """
        with self._span("db.delete_task", "delete_task", **{"task.id": task_id}) as span:
            stmt = delete(Task).where(Task.id == task_id).execution_options(synchronize_session=False)
            async with self.database.session() as session:
                result = await session.execute(stmt)
                await session.commit()
            span.set_attribute("db.rows_affected", result.rowcount)
            if result.rowcount == 0:
                raise NotFoundError("Task", {"id": task_id})

    async def complete_task(self, task_id: int) -> Task:
        """Mark a task completed and return it. Completing twice is allowed.

        Raises:
            NotFoundError: No task has this id.
        """
        with self._span("db.complete_task", "update_task", **{"task.id": task_id}):
            stmt = (
                update(Task)
                .where(Task.id == task_id)
                .values(completed=True)
                .returning(Task)
                .execution_options(synchronize_session=False)
            )
            async with self.database.session() as session:
                result = await session.execute(stmt)
                task = result.scalar_one_or_none()
                await session.commit()
            if task is None:
                raise NotFoundError("Task", {"id": task_id})
            return task

    def _simulated_failure(self, span: Span, title: str) -> RepositoryError:
        """Record a synthetic store failure, stack trace included, on ``span``."""
        error = RepositoryError(
            f"simulated database error: cannot create task with title {title!r}",
            {"simulated": True},
        )
        stack_trace = "".join(traceback.format_stack())

        span.record_exception(error, attributes={"exception.stacktrace": stack_trace})
        span.set_status(trace.Status(trace.StatusCode.ERROR, error.message))
        span.set_attributes(
            {
                "error.type": "SimulatedError",
                "error.simulated": True,
                "exception.stacktrace": stack_trace,
            },
        )
        span.add_event(
            "error.with.stacktrace",
            {"error.message": error.message, "stack.trace": stack_trace},
        )
        logger.error(error.message, extra={"error_type": "SimulatedError"})
        return error
