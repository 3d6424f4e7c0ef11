"""Ownership gate for task records.

Pure functions only: no I/O, no session state. The task store calls
``authorize`` on every record it returns or mutates; a caller having
already checked ownership never counts.
"""

from typing import Optional

from taskgate.models import Decision, Operation, Task


def authorize(subject: str, operation: Operation, target: Optional[Task] = None) -> Decision:
    """Decide whether subject may perform operation on target.

    CREATE is always allowed because the creator becomes the owner.
    READ, UPDATE and DELETE require ``target.owner == subject``.
    """
    if not subject:
        return Decision.DENY

    if operation == Operation.CREATE:
        return Decision.ALLOW

    if target is None:
        return Decision.DENY

    if target.owner == subject:
        return Decision.ALLOW
    return Decision.DENY


def is_allowed(subject: str, operation: Operation, target: Optional[Task] = None) -> bool:
    return authorize(subject, operation, target) == Decision.ALLOW


def filter_visible(subject: str, tasks: list[Task]) -> list[Task]:
    """Drop every record the subject may not read, preserving order."""
    return [task for task in tasks if is_allowed(subject, Operation.READ, task)]
