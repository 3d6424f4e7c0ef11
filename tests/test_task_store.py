"""
Task store tests: ownership isolation, validation and durability.
"""

from uuid import uuid4

import pytest

from taskgate.db.base import get_session
from taskgate.engine import TaskNotFound, TaskStore, TaskValidationError
from taskgate.engine.errors import SessionExpired
from taskgate.models import TaskPatch
from taskgate.observability.metrics import metrics


@pytest.mark.asyncio
async def test_create_sets_owner_from_subject(session):
    """Owner comes from the subject, never from the caller's data."""
    store = TaskStore(session)
    task = await store.create("alice", "  Buy milk  ")

    assert task.owner == "alice"
    assert task.title == "Buy milk"
    assert task.completed is False
    assert task.created_at == task.updated_at


@pytest.mark.asyncio
async def test_create_rejects_blank_title(session):
    store = TaskStore(session)
    for title in ("", "   ", "\t\n"):
        with pytest.raises(TaskValidationError):
            await store.create("alice", title)
    assert await store.list("alice") == []


@pytest.mark.asyncio
async def test_create_rejects_overlong_title(session):
    from taskgate.config import settings

    store = TaskStore(session)
    with pytest.raises(TaskValidationError):
        await store.create("alice", "x" * (settings.max_title_length + 1))


@pytest.mark.asyncio
async def test_create_requires_subject(session):
    store = TaskStore(session)
    with pytest.raises(SessionExpired):
        await store.create("", "orphan")


@pytest.mark.asyncio
async def test_list_returns_only_own_tasks_in_creation_order(session):
    store = TaskStore(session)
    first = await store.create("alice", "first")
    await store.create("bob", "bob's")
    second = await store.create("alice", "second")

    tasks = await store.list("alice")
    assert [t.id for t in tasks] == [first.id, second.id]
    assert all(t.owner == "alice" for t in tasks)


@pytest.mark.asyncio
async def test_other_subject_gets_not_found(session):
    """Get, update and delete of someone else's task look exactly like a missing task."""
    store = TaskStore(session)
    task = await store.create("alice", "private")

    with pytest.raises(TaskNotFound) as denied:
        await store.get("bob", task.id)
    with pytest.raises(TaskNotFound):
        await store.update("bob", task.id, TaskPatch(title="hijacked"))
    with pytest.raises(TaskNotFound):
        await store.delete("bob", task.id)

    missing_id = uuid4()
    with pytest.raises(TaskNotFound) as missing:
        await store.get("bob", missing_id)

    assert denied.value.code == missing.value.code
    assert type(denied.value) is type(missing.value)

    unchanged = await store.get("alice", task.id)
    assert unchanged.title == "private"
    assert metrics.counter_value("store.ownership.denied") == 3


@pytest.mark.asyncio
async def test_non_uuid_id_is_not_found(session):
    store = TaskStore(session)
    with pytest.raises(TaskNotFound):
        await store.get("alice", "not-a-uuid")


@pytest.mark.asyncio
async def test_update_applies_only_supplied_fields(session):
    store = TaskStore(session)
    task = await store.create("alice", "write report")

    completed = await store.update("alice", task.id, TaskPatch(completed=True))
    assert completed.completed is True
    assert completed.title == "write report"
    assert completed.created_at == task.created_at
    assert completed.updated_at >= task.updated_at

    renamed = await store.update("alice", task.id, TaskPatch(title=" final report "))
    assert renamed.title == "final report"
    assert renamed.completed is True


@pytest.mark.asyncio
async def test_update_rejects_blank_title_and_leaves_record(session):
    store = TaskStore(session)
    task = await store.create("alice", "keep me")

    with pytest.raises(TaskValidationError):
        await store.update("alice", task.id, TaskPatch(title="  "))

    assert (await store.get("alice", task.id)).title == "keep me"


@pytest.mark.asyncio
async def test_empty_patch_returns_record_unchanged(session):
    store = TaskStore(session)
    task = await store.create("alice", "noop")
    assert await store.update("alice", task.id, TaskPatch()) == task


@pytest.mark.asyncio
async def test_delete_twice_second_is_not_found(session):
    store = TaskStore(session)
    task = await store.create("alice", "temporary")

    await store.delete("alice", task.id)
    with pytest.raises(TaskNotFound):
        await store.delete("alice", task.id)
    with pytest.raises(TaskNotFound):
        await store.get("alice", task.id)


@pytest.mark.asyncio
async def test_committed_write_visible_to_new_session(session_factory):
    """A write reported as successful is durable for the next reader."""
    async with get_session(session_factory) as session:
        task = await TaskStore(session).create("alice", "durable")

    async with get_session(session_factory) as session:
        reread = await TaskStore(session).get("alice", task.id)

    assert reread == task


@pytest.mark.asyncio
async def test_failed_unit_of_work_is_rolled_back(session_factory):
    with pytest.raises(TaskValidationError):
        async with get_session(session_factory) as session:
            store = TaskStore(session)
            await store.create("alice", "rolled back")
            await store.create("alice", "")

    async with get_session(session_factory) as session:
        assert await TaskStore(session).list("alice") == []


@pytest.mark.asyncio
async def test_store_operations_are_timed(session):
    store = TaskStore(session)
    await store.create("alice", "timed")
    await store.list("alice")

    assert metrics.counter_value("store.create.count") == 1
    assert metrics.counter_value("store.list.count") == 1
