"""SQLAlchemy table definitions."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from taskgate.db.base import Base


class TaskTable(Base):
    """Tasks table - per-user task records."""

    __tablename__ = "tasks"

    # Surrogate key doubles as insertion order for created_at ties
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    task_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, unique=True)

    # Ownership (immutable)
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False)

    title: Mapped[str] = mapped_column(String(1024), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        # Owner-filtered listing ordered by creation
        Index("idx_tasks_owner_created", "owner_id", "created_at", "seq"),
    )
