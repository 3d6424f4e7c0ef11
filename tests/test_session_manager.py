"""
Client session tests: acquire, persist, restore and invalidate.
"""

import json
import os
from datetime import timedelta

import pytest

from conftest import FakeAuthenticator
from taskgate.client import SessionManager
from taskgate.engine import AuthFailure, SessionExpired
from taskgate.models import Credentials


CREDENTIALS = Credentials(username="alice", password="correct-horse")


@pytest.mark.asyncio
async def test_acquire_persists_and_restore_reloads(tmp_path):
    path = tmp_path / "session.json"
    manager = SessionManager(FakeAuthenticator(), storage_path=path)

    token = await manager.acquire(CREDENTIALS)
    assert manager.current() == token
    assert manager.subject == "user-alice"
    assert path.exists()
    assert oct(os.stat(path).st_mode & 0o777) == oct(0o600)

    # A new process sees the same token.
    restarted = SessionManager(FakeAuthenticator(), storage_path=path)
    assert restarted.current() is None
    assert restarted.restore() == token
    assert restarted.require_valid() == token


@pytest.mark.asyncio
async def test_acquire_failure_leaves_no_session(tmp_path):
    path = tmp_path / "session.json"
    manager = SessionManager(FakeAuthenticator(), storage_path=path)

    with pytest.raises(AuthFailure):
        await manager.acquire(Credentials(username="alice", password="wrong"))

    assert manager.current() is None
    assert not path.exists()


@pytest.mark.asyncio
async def test_reacquire_overwrites_single_record(tmp_path):
    path = tmp_path / "session.json"
    manager = SessionManager(FakeAuthenticator(), storage_path=path)

    await manager.acquire(CREDENTIALS)
    second = await manager.acquire(CREDENTIALS)

    assert json.loads(path.read_text())["token"] == second.token
    assert [p.name for p in tmp_path.iterdir()] == ["session.json"]


@pytest.mark.asyncio
async def test_restore_expired_discards_stored_token(tmp_path):
    path = tmp_path / "session.json"
    manager = SessionManager(FakeAuthenticator(), storage_path=path)
    token = await manager.acquire(CREDENTIALS)

    restarted = SessionManager(FakeAuthenticator(), storage_path=path)
    assert restarted.restore(now=token.expires_at + timedelta(seconds=1)) is None
    assert restarted.current() is None
    assert not path.exists()


def test_restore_missing_file(tmp_path):
    manager = SessionManager(FakeAuthenticator(), storage_path=tmp_path / "absent.json")
    assert manager.restore() is None


@pytest.mark.parametrize(
    "content",
    [
        b"not json",
        b"[]",
        json.dumps({"version": 99}).encode(),
        json.dumps({"version": 1, "subject": "x"}).encode(),
        b"\xff\xfe\x00garbage",
    ],
)
def test_restore_corrupt_file(tmp_path, content):
    path = tmp_path / "session.json"
    path.write_bytes(content)
    manager = SessionManager(FakeAuthenticator(), storage_path=path)

    assert manager.restore() is None
    assert manager.last_error


@pytest.mark.asyncio
async def test_invalidate_is_idempotent(tmp_path):
    path = tmp_path / "session.json"
    manager = SessionManager(FakeAuthenticator(), storage_path=path)
    await manager.acquire(CREDENTIALS)

    manager.invalidate()
    manager.invalidate()

    assert manager.current() is None
    assert not path.exists()
    assert SessionManager(FakeAuthenticator(), storage_path=path).restore() is None


def test_require_valid_without_session(tmp_path):
    manager = SessionManager(FakeAuthenticator(), storage_path=tmp_path / "session.json")
    with pytest.raises(SessionExpired):
        manager.require_valid()


@pytest.mark.asyncio
async def test_require_valid_expired_invalidates(tmp_path):
    path = tmp_path / "session.json"
    manager = SessionManager(FakeAuthenticator(), storage_path=path)
    token = await manager.acquire(CREDENTIALS)

    with pytest.raises(SessionExpired):
        manager.require_valid(now=token.expires_at)

    assert manager.current() is None
    assert not path.exists()


@pytest.mark.asyncio
async def test_verify_rejected_remotely_invalidates(tmp_path):
    authenticator = FakeAuthenticator()
    manager = SessionManager(authenticator, storage_path=tmp_path / "session.json")
    token = await manager.acquire(CREDENTIALS)

    assert await manager.verify() == "user-alice"

    authenticator.revoked.add(token.token)
    with pytest.raises(SessionExpired):
        await manager.verify()
    assert manager.current() is None
