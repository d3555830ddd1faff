"""SQLAlchemy model for the tasks feature."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, Text, false, func
from sqlalchemy.orm import Mapped, mapped_column

from todo_service.core.database import Base


class Task(Base):
    """A to-do item.

    ``id`` and ``created_at`` are assigned by the store on insert and never
    change afterwards. ``completed`` only ever goes from false to true.
    """

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    completed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=func.current_timestamp(),
    )

    def __repr__(self) -> str:
        return f"<Task(id={self.id}, title={self.title!r}, completed={self.completed})>"
