"""Client-held, optimistically updated projection of task records."""

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from taskgate.models import Task

logger = logging.getLogger(__name__)

Listener = Callable[[list[Task]], None]


@dataclass(frozen=True)
class CacheSnapshot:
    """Pre-mutation state of one cache entry.

    ``task`` is None when the key was absent. ``position`` remembers where
    the entry sat so a revert restores order as well as content.
    """

    key: str
    task: Optional[Task]
    position: Optional[int]


class ClientStateCache:
    """Ordered mapping of task key to Task, used as a read model for display.

    Keys are ``str(task.id)``. Only the mutation pipeline writes to the
    cache; everything else reads and subscribes.
    """

    def __init__(self) -> None:
        self._entries: dict[str, Task] = {}
        self._listeners: list[Listener] = []

    # ---- reads ----

    def get(self, key: str) -> Optional[Task]:
        return self._entries.get(key)

    def tasks(self) -> list[Task]:
        return list(self._entries.values())

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def snapshot_of(self, key: str) -> CacheSnapshot:
        task = self._entries.get(key)
        position = self.keys().index(key) if task is not None else None
        return CacheSnapshot(key=key, task=task, position=position)

    # ---- pipeline writes ----

    def apply_optimistic(self, key: str, task: Optional[Task]) -> None:
        """Write a not-yet-confirmed value. None removes the entry."""
        if task is None:
            self._entries.pop(key, None)
        else:
            self._entries[key] = task
        self._notify()

    def reconcile(self, key: str, canonical: Optional[Task]) -> None:
        """Replace the entry at key with the server's canonical record.

        When the canonical id differs from key (a create's temporary id),
        the entry is re-keyed in place. None confirms a removal.
        """
        if canonical is None:
            self._entries.pop(key, None)
            self._notify()
            return

        canonical_key = str(canonical.id)
        items = [(k, v) for k, v in self._entries.items() if k != canonical_key or k == key]
        for index, (existing_key, _) in enumerate(items):
            if existing_key == key:
                items[index] = (canonical_key, canonical)
                break
        else:
            items.append((canonical_key, canonical))
        self._entries = dict(items)
        self._notify()

    def revert(self, snapshot: CacheSnapshot) -> None:
        """Restore the entry captured by snapshot, content and position."""
        items = [(k, v) for k, v in self._entries.items() if k != snapshot.key]
        if snapshot.task is not None:
            position = min(snapshot.position or 0, len(items))
            items.insert(position, (snapshot.key, snapshot.task))
        self._entries = dict(items)
        self._notify()

    def replace_all(self, tasks: Iterable[Task]) -> None:
        """Swap the whole projection for a freshly listed one."""
        self._entries = {str(task.id): task for task in tasks}
        self._notify()

    # ---- change notification ----

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        current = self.tasks()
        for listener in list(self._listeners):
            try:
                listener(current)
            except Exception:
                logger.exception("Cache listener %r failed", listener)
