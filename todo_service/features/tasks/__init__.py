"""Tasks feature: create, list, complete and delete to-do items."""

from __future__ import annotations

from .models import Task
from .repository import TaskRepository
from .router import router
from .schemas import TaskCreate, TaskResponse

__all__ = [
    "Task",
    "TaskCreate",
    "TaskRepository",
    "TaskResponse",
    "router",
]
