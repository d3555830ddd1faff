"""API router for the tasks feature.

Endpoints:
    GET     /tasks                      - List all tasks, newest first
    POST    /tasks                      - Create a task
    DELETE  /tasks/{task_id}            - Delete a task
    POST    /tasks/{task_id}/complete   - Mark a task completed
    OPTIONS on each path                - CORS preflight, empty 200

Request bodies and ids are validated here, before the store is touched,
and rejected with 400. Request counting, CORS headers and body capture
happen in middleware.
"""

from __future__ import annotations

import logging
import re
from typing import Annotated

from fastapi import APIRouter, Depends, Request, Response, status
from pydantic import ValidationError as PydanticValidationError

from todo_service.core.database import NotFoundError, RepositoryError
from todo_service.core.exceptions import (
    InternalServerException,
    NotFoundException,
    ValidationException,
)
from todo_service.features.tasks.repository import TaskRepository
from todo_service.features.tasks.schemas import TaskCreate, TaskResponse
from todo_service.infra.external.notifications import TaskNotifier
from todo_service.infra.logging.context import set_log_context
from todo_service.infra.tracing.opentelemetry import add_span_attributes, add_span_event, record_exception

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)

# Signed 64-bit decimal ids, the SQLite INTEGER range
TASK_ID_PATTERN = re.compile(r"[+-]?[0-9]+", re.ASCII)
MIN_TASK_ID = -(2**63)
MAX_TASK_ID = 2**63 - 1


def get_task_repository(request: Request) -> TaskRepository:
    return request.app.state.task_repository


def get_task_notifier(request: Request) -> TaskNotifier | None:
    return getattr(request.app.state, "notifier", None)


TaskRepositoryDep = Annotated[TaskRepository, Depends(get_task_repository)]
TaskNotifierDep = Annotated[TaskNotifier | None, Depends(get_task_notifier)]


def _parse_task_id(raw: str) -> int:
    """Parse a path id as a signed 64-bit decimal integer (ASCII digits only)."""
    if TASK_ID_PATTERN.fullmatch(raw) is not None:
        task_id = int(raw)
        if MIN_TASK_ID <= task_id <= MAX_TASK_ID:
            return task_id
    raise ValidationException(
        detail="Invalid task ID",
        extra={"task_id": raw},
    )


def _internal_error(request: Request, exc: RepositoryError, message: str, **context: object) -> InternalServerException:
    """Record a store failure on the server span and build the 500 response."""
    record_exception(exc)
    logger.error(message, extra={"error": str(exc), **context})
    return InternalServerException(instance=request.url.path)


def _not_found(request: Request, task_id: int) -> NotFoundException:
    return NotFoundException(
        detail="Task not found",
        type="task-not-found",
        instance=request.url.path,
        extra={"task_id": task_id},
    )


@router.get(
    "",
    response_model=list[TaskResponse],
    summary="List tasks",
    description="Return every task, newest first.",
)
async def list_tasks(request: Request, repository: TaskRepositoryDep) -> list[TaskResponse]:
    add_span_attributes({"operation": "list_tasks"})
    set_log_context(operation="list_tasks")
    logger.info("Fetching all tasks")

    try:
        tasks = await repository.list_tasks()
    except RepositoryError as e:
        raise _internal_error(request, e, "Error fetching tasks") from e

    add_span_attributes({"tasks.count": len(tasks)})
    logger.info("Tasks fetched", extra={"count": len(tasks)})
    return [TaskResponse.model_validate(task) for task in tasks]


@router.post(
    "",
    response_model=TaskResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create task",
    description="Create a task from a JSON body with a non-empty title.",
)
async def create_task(
    request: Request,
    repository: TaskRepositoryDep,
    notifier: TaskNotifierDep,
) -> TaskResponse:
    add_span_attributes({"operation": "create_task"})
    set_log_context(operation="create_task")

    # Parsed by hand so malformed input is a 400, not FastAPI's 422
    body = await request.body()
    try:
        payload = TaskCreate.model_validate_json(body)
    except PydanticValidationError as e:
        if any(error["loc"][:1] == ("title",) for error in e.errors()):
            detail = "Title is required"
        else:
            detail = "Invalid request body"
        logger.warning(detail, extra={"error_count": e.error_count()})
        raise ValidationException(detail=detail, instance=request.url.path) from None

    add_span_attributes({"task.title": payload.title})
    logger.info("Creating task", extra={"title": payload.title})

    try:
        task = await repository.create_task(payload.title)
    except RepositoryError as e:
        raise _internal_error(request, e, "Error creating task", title=payload.title) from e

    add_span_attributes({"task.id": task.id})
    add_span_event("task.created", {"task.id": task.id})
    set_log_context(task_id=task.id)

    if notifier is not None:
        await notifier.notify_task_created(task)

    logger.info("Task created successfully", extra={"task_id": task.id, "title": task.title})
    return TaskResponse.model_validate(task)


@router.delete(
    "/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete task",
)
async def delete_task(task_id: str, request: Request, repository: TaskRepositoryDep) -> Response:
    task_id_int = _parse_task_id(task_id)

    add_span_attributes({"operation": "delete_task", "task.id": task_id_int})
    set_log_context(operation="delete_task", task_id=task_id_int)
    logger.info("Deleting task")

    try:
        await repository.delete_task(task_id_int)
    except NotFoundError:
        logger.warning("Task not found for deletion")
        raise _not_found(request, task_id_int) from None
    except RepositoryError as e:
        raise _internal_error(request, e, "Error deleting task") from e

    logger.info("Task deleted successfully")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{task_id}/complete",
    response_model=TaskResponse,
    summary="Complete task",
    description="Mark a task completed. Completing an already completed task succeeds.",
)
async def complete_task(task_id: str, request: Request, repository: TaskRepositoryDep) -> TaskResponse:
    task_id_int = _parse_task_id(task_id)

    add_span_attributes({"operation": "complete_task", "task.id": task_id_int})
    set_log_context(operation="complete_task", task_id=task_id_int)
    logger.info("Completing task")

    try:
        task = await repository.complete_task(task_id_int)
    except NotFoundError:
        logger.warning("Task not found for completion")
        raise _not_found(request, task_id_int) from None
    except RepositoryError as e:
        raise _internal_error(request, e, "Error completing task") from e

    logger.info("Task completed successfully")
    return TaskResponse.model_validate(task)


# CORS preflight; headers come from CORSHeadersMiddleware
@router.options("", include_in_schema=False)
@router.options("/{task_id}", include_in_schema=False)
@router.options("/{task_id}/complete", include_in_schema=False)
async def preflight() -> Response:
    return Response(status_code=status.HTTP_200_OK)
