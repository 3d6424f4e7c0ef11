"""Task model - a user's personal task record."""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class Task(BaseModel):
    """Canonical task record as stored by the task store.

    Frozen so that a snapshot held by the client cache can never be
    mutated behind its back.
    """

    model_config = ConfigDict(frozen=True)

    # Identity (immutable after creation)
    id: UUID
    owner: str

    # Mutable fields
    title: str
    completed: bool = False

    # Timestamps
    created_at: datetime
    updated_at: datetime


class TaskPatch(BaseModel):
    """Partial update for a task. Only title and completion state may change."""

    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    completed: Optional[bool] = None

    def is_empty(self) -> bool:
        return self.title is None and self.completed is None

    def changes(self) -> dict[str, object]:
        """Return only the fields the caller supplied."""
        return self.model_dump(exclude_none=True)

    def apply_to(self, task: Task, updated_at: Optional[datetime] = None) -> Task:
        """Return a copy of task with this patch applied."""
        values = self.changes()
        if "title" in values:
            values["title"] = str(values["title"]).strip()
        if updated_at is not None:
            values["updated_at"] = updated_at
        return task.model_copy(update=values)