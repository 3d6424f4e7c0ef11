"""Database repositories for TaskGate entities."""

from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.db.tables import TaskTable
from taskgate.models import Task
from taskgate.utils.time import ensure_utc, utc_now


class TaskRepository:
    """Repository for task rows.

    Reads by id are not owner-scoped here; the task store applies the
    ownership gate on whatever the repository returns.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, owner_id: str, title: str) -> Task:
        """Insert a new task owned by owner_id."""
        now = utc_now()
        task_row = TaskTable(
            task_id=uuid4(),
            owner_id=owner_id,
            title=title,
            completed=False,
            created_at=now,
            updated_at=now,
        )
        self.session.add(task_row)
        await self.session.flush()
        return self._row_to_model(task_row)

    async def get(self, task_id: UUID, for_update: bool = False) -> Task | None:
        """Get a task by ID, optionally locking the row until commit."""
        query = select(TaskTable).where(TaskTable.task_id == task_id)
        if for_update:
            query = query.with_for_update()

        result = await self.session.execute(query)
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    async def list_for_owner(self, owner_id: str) -> list[Task]:
        """List tasks owned by owner_id, oldest first."""
        result = await self.session.execute(
            select(TaskTable)
            .where(TaskTable.owner_id == owner_id)
            .order_by(TaskTable.created_at.asc(), TaskTable.seq.asc())
        )
        return [self._row_to_model(r) for r in result.scalars().all()]

    async def update_fields(
        self,
        task_id: UUID,
        owner_id: str,
        values: dict[str, Any],
    ) -> Task | None:
        """Apply a field set to one row in a single statement."""
        values = {**values, "updated_at": utc_now()}
        await self.session.execute(
            update(TaskTable)
            .where(TaskTable.task_id == task_id, TaskTable.owner_id == owner_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return await self._refresh(task_id)

    async def delete(self, task_id: UUID, owner_id: str) -> bool:
        """Hard-delete a row. Returns False if nothing matched."""
        result = await self.session.execute(
            delete(TaskTable)
            .where(TaskTable.task_id == task_id, TaskTable.owner_id == owner_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    async def _refresh(self, task_id: UUID) -> Task | None:
        result = await self.session.execute(
            select(TaskTable)
            .where(TaskTable.task_id == task_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return self._row_to_model(row) if row else None

    def _row_to_model(self, row: TaskTable) -> Task:
        """Convert database row to model."""
        return Task(
            id=row.task_id,
            owner=row.owner_id,
            title=row.title,
            completed=row.completed,
            created_at=ensure_utc(row.created_at),
            updated_at=ensure_utc(row.updated_at),
        )
