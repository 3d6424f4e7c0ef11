"""TaskGate engine errors."""

from typing import Optional

from taskgate.models.enums import FailureKind


class TaskGateError(Exception):
    """Base error for TaskGate operations."""

    kind: Optional[FailureKind] = None

    def __init__(self, message: str, code: str = "TASKGATE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class AuthFailure(TaskGateError):
    """Credentials were rejected. Never retried automatically."""

    kind = FailureKind.AUTH_FAILURE

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message, "AUTH_FAILURE")


class SessionExpired(TaskGateError):
    """Identity token is missing, invalid or expired."""

    kind = FailureKind.SESSION_EXPIRED

    def __init__(self, message: str = "Session expired"):
        super().__init__(message, "SESSION_EXPIRED")


class TaskValidationError(TaskGateError):
    """Request data violates a task invariant (e.g. empty title)."""

    kind = FailureKind.VALIDATION

    def __init__(self, message: str, field: str = "title"):
        super().__init__(message, "VALIDATION_ERROR")
        self.field = field


class TaskNotFound(TaskGateError):
    """Task does not exist or is not owned by the requester.

    The two cases are deliberately indistinguishable.
    """

    kind = FailureKind.NOT_FOUND

    def __init__(self, task_id: str):
        super().__init__(f"Task not found: {task_id}", "TASK_NOT_FOUND")
        self.task_id = task_id


class TransientFailure(TaskGateError):
    """Network failure or timeout. The caller may retry."""

    kind = FailureKind.TRANSIENT

    def __init__(self, message: str = "Temporary failure, try again"):
        super().__init__(message, "TRANSIENT_FAILURE")


class SessionStorageError(TaskGateError):
    """Local session storage could not be written or erased."""

    def __init__(self, message: str):
        super().__init__(message, "SESSION_STORAGE_ERROR")


class UsernameTaken(TaskGateError):
    """Registration attempted with an existing username."""

    def __init__(self, username: str):
        super().__init__(f"Username already registered: {username}", "USERNAME_TAKEN")
        self.username = username


class InvalidStateTransition(TaskGateError):
    """A mutation that already reached a terminal state was resolved again."""

    def __init__(self, current_state: str, requested_state: str):
        super().__init__(
            f"Invalid transition from {current_state} to {requested_state}",
            "INVALID_STATE_TRANSITION",
        )
        self.current_state = current_state
        self.requested_state = requested_state
