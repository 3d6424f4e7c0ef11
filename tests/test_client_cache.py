"""
Client cache tests: optimistic writes, reconcile and revert.
"""

from datetime import datetime, timezone
from uuid import uuid4

from taskgate.client import ClientStateCache
from taskgate.models import Task


def _task(title: str, task_id=None) -> Task:
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    return Task(id=task_id or uuid4(), owner="alice", title=title, created_at=now, updated_at=now)


def _cache(*tasks: Task) -> ClientStateCache:
    cache = ClientStateCache()
    cache.replace_all(tasks)
    return cache


def test_snapshot_of_absent_key():
    snapshot = ClientStateCache().snapshot_of("missing")
    assert snapshot.task is None
    assert snapshot.position is None


def test_revert_restores_content_and_position():
    a, b, c = _task("a"), _task("b"), _task("c")
    cache = _cache(a, b, c)

    snapshot = cache.snapshot_of(str(b.id))
    cache.apply_optimistic(str(b.id), None)
    assert [t.title for t in cache.tasks()] == ["a", "c"]

    cache.revert(snapshot)
    assert [t.title for t in cache.tasks()] == ["a", "b", "c"]


def test_revert_of_absent_snapshot_removes_entry():
    cache = _cache(_task("a"))
    new = _task("new")
    snapshot = cache.snapshot_of(str(new.id))

    cache.apply_optimistic(str(new.id), new)
    assert len(cache) == 2

    cache.revert(snapshot)
    assert str(new.id) not in cache
    assert [t.title for t in cache.tasks()] == ["a"]


def test_reconcile_rekeys_in_place():
    a, c = _task("a"), _task("c")
    cache = _cache(a, c)
    temp = _task("b")
    cache.apply_optimistic(str(temp.id), temp)

    canonical = _task("b (server)")
    cache.reconcile(str(temp.id), canonical)

    assert str(temp.id) not in cache
    assert cache.get(str(canonical.id)) == canonical
    assert [t.title for t in cache.tasks()] == ["a", "c", "b (server)"]


def test_reconcile_replaces_existing_value():
    a = _task("a")
    cache = _cache(a)
    cache.apply_optimistic(str(a.id), a.model_copy(update={"title": "a (local)"}))

    canonical = a.model_copy(update={"title": "a (server)"})
    cache.reconcile(str(a.id), canonical)
    assert cache.tasks() == [canonical]


def test_reconcile_none_confirms_removal():
    a = _task("a")
    cache = _cache(a)
    cache.reconcile(str(a.id), None)
    assert len(cache) == 0


def test_subscribers_notified_and_can_unsubscribe():
    cache = ClientStateCache()
    seen = []
    unsubscribe = cache.subscribe(lambda tasks: seen.append([t.title for t in tasks]))

    cache.apply_optimistic("k", _task("first"))
    unsubscribe()
    cache.apply_optimistic("k2", _task("second"))

    assert seen == [["first"]]


def test_failing_subscriber_does_not_break_others():
    cache = ClientStateCache()
    seen = []

    def broken(tasks):
        raise RuntimeError("boom")

    cache.subscribe(broken)
    cache.subscribe(lambda tasks: seen.append(len(tasks)))

    cache.apply_optimistic("k", _task("x"))
    assert seen == [1]
