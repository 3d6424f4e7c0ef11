"""TaskGate enumerations."""

from enum import Enum


class Operation(str, Enum):
    """Operations the ownership gate decides on."""

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class Decision(str, Enum):
    """Outcome of an ownership check."""

    ALLOW = "allow"
    DENY = "deny"


class MutationKind(str, Enum):
    """Kinds of client-initiated mutations."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationState(str, Enum):
    """Lifecycle of a single in-flight mutation."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"

    @classmethod
    def terminal_states(cls) -> set["MutationState"]:
        """Return terminal states."""
        return {cls.CONFIRMED, cls.REJECTED}

    def is_terminal(self) -> bool:
        """Check if state is terminal."""
        return self in self.terminal_states()


class FailureKind(str, Enum):
    """Failure taxonomy surfaced to the presentation layer."""

    AUTH_FAILURE = "auth_failure"
    SESSION_EXPIRED = "session_expired"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"

    @property
    def retryable(self) -> bool:
        """Only transient failures may be retried by the caller."""
        return self is FailureKind.TRANSIENT
