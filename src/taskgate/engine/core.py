"""TaskGate core engine - the authoritative task store."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.config import settings
from taskgate.db.repositories import TaskRepository
from taskgate.engine.errors import SessionExpired, TaskNotFound, TaskValidationError
from taskgate.models import Decision, Operation, Task, TaskPatch
from taskgate.observability.metrics import metrics
from taskgate.policy import authorize, filter_visible

logger = logging.getLogger(__name__)


def _parse_task_id(task_id: UUID | str) -> UUID:
    """Coerce a task id; anything that is not a UUID cannot exist."""
    if isinstance(task_id, UUID):
        return task_id
    try:
        return UUID(str(task_id))
    except ValueError:
        raise TaskNotFound(str(task_id)) from None


def validate_title(title: Any) -> str:
    """Return the trimmed title or raise TaskValidationError."""
    if not isinstance(title, str):
        raise TaskValidationError("Title must be text")
    trimmed = title.strip()
    if not trimmed:
        raise TaskValidationError("Title must not be empty")
    if len(trimmed) > settings.max_title_length:
        raise TaskValidationError(
            f"Title must be at most {settings.max_title_length} characters"
        )
    return trimmed


class TaskStore:
    """Authoritative record keeper for tasks.

    Every operation takes the already-validated subject of the request and
    runs the ownership gate itself. Denials surface as TaskNotFound so the
    existence of other users' records never leaks.

    Changes are flushed into the caller's transaction; the request scope
    commits before the result is reported as durable.
    """

    def __init__(self, session: AsyncSession):
        self.session = session
        self.tasks = TaskRepository(session)

    async def create(self, subject: str, title: str) -> Task:
        """Create a task owned by subject."""
        with metrics.timed("store.create"):
            if authorize(subject, Operation.CREATE) != Decision.ALLOW:
                raise SessionExpired("No authenticated subject")
            task = await self.tasks.create(owner_id=subject, title=validate_title(title))

        logger.debug("Created task %s for %s", task.id, subject)
        return task

    async def list(self, subject: str) -> list[Task]:
        """List subject's tasks in creation order."""
        with metrics.timed("store.list"):
            rows = await self.tasks.list_for_owner(subject)
            # The owner filter above is an optimization; the gate still decides.
            visible = filter_visible(subject, rows)

        if len(visible) != len(rows):
            logger.error(
                "Owner-filtered query returned %d foreign rows for %s",
                len(rows) - len(visible),
                subject,
            )
        return visible

    async def get(self, subject: str, task_id: UUID | str) -> Task:
        """Get one of subject's tasks."""
        with metrics.timed("store.get"):
            return await self._load_authorized(subject, task_id, Operation.READ)

    async def update(self, subject: str, task_id: UUID | str, patch: TaskPatch) -> Task:
        """Apply the supplied fields of patch to one of subject's tasks.

        The row stays locked until the surrounding transaction ends, so two
        concurrent updates each land as a whole.
        """
        with metrics.timed("store.update"):
            task = await self._load_authorized(
                subject, task_id, Operation.UPDATE, for_update=True
            )

            values: dict[str, Any] = {}
            if patch.title is not None:
                values["title"] = validate_title(patch.title)
            if patch.completed is not None:
                values["completed"] = patch.completed
            if not values:
                return task

            updated = await self.tasks.update_fields(task.id, subject, values)
            if updated is None:
                raise TaskNotFound(str(task_id))

        logger.debug("Updated task %s fields=%s", updated.id, sorted(values))
        return updated

    async def delete(self, subject: str, task_id: UUID | str) -> None:
        """Hard-delete one of subject's tasks."""
        with metrics.timed("store.delete"):
            task = await self._load_authorized(
                subject, task_id, Operation.DELETE, for_update=True
            )
            if not await self.tasks.delete(task.id, subject):
                raise TaskNotFound(str(task_id))

        logger.debug("Deleted task %s", task.id)

    async def commit(self) -> None:
        """Make flushed changes durable before reporting success."""
        await self.session.commit()

    async def _load_authorized(
        self,
        subject: str,
        task_id: UUID | str,
        operation: Operation,
        for_update: bool = False,
    ) -> Task:
        """Fetch a record and run the ownership gate on it."""
        parsed = _parse_task_id(task_id)
        task = await self.tasks.get(parsed, for_update=for_update)

        if task is None or authorize(subject, operation, task) != Decision.ALLOW:
            if task is not None:
                metrics.inc_counter("store.ownership.denied")
            raise TaskNotFound(str(task_id))
        return task
