"""TaskGate engine - authoritative task store and error taxonomy."""

from taskgate.engine.core import TaskStore
from taskgate.engine.errors import (
    AuthFailure,
    InvalidStateTransition,
    SessionExpired,
    SessionStorageError,
    TaskGateError,
    TaskNotFound,
    TaskValidationError,
    TransientFailure,
    UsernameTaken,
)

__all__ = [
    "AuthFailure",
    "InvalidStateTransition",
    "SessionExpired",
    "SessionStorageError",
    "TaskGateError",
    "TaskNotFound",
    "TaskStore",
    "TaskValidationError",
    "TransientFailure",
    "UsernameTaken",
]
