"""TaskGate data models."""

from taskgate.models.enums import (
    Decision,
    FailureKind,
    MutationKind,
    MutationState,
    Operation,
)
from taskgate.models.identity import Credentials, IdentityToken
from taskgate.models.task import Task, TaskPatch

__all__ = [
    "Credentials",
    "Decision",
    "FailureKind",
    "IdentityToken",
    "MutationKind",
    "MutationState",
    "Operation",
    "Task",
    "TaskPatch",
]
