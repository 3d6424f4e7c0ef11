"""TaskGate database layer."""

from taskgate.db.base import Base, get_session, init_db
from taskgate.db.tables import TaskTable

__all__ = [
    "Base",
    "get_session",
    "init_db",
    "TaskTable",
]
