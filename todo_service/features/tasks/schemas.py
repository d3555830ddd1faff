"""Pydantic schemas for the tasks feature."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class TaskCreate(BaseModel):
    """Payload used when creating a task."""

    title: StrictStr = Field(..., min_length=1, description="Task title (non-empty)")


class TaskResponse(BaseModel):
    """Representation returned from the API."""

    id: int
    title: str
    completed: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
