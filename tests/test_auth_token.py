"""
Identity token and credential tests.
"""

from datetime import timedelta

import pytest
from jose import jwt

from taskgate.auth import (
    authenticate,
    extract_bearer_token,
    hash_password,
    issue_token,
    register_user,
    validate_token,
    verify_password_hash,
)
from taskgate.config import settings
from taskgate.engine import AuthFailure, SessionExpired, UsernameTaken
from taskgate.models import Credentials


def test_issue_and_validate_round_trip():
    token = issue_token("subject-1")
    assert token.subject == "subject-1"
    assert token.expires_at > token.issued_at
    assert not token.is_expired()
    assert validate_token(token.token) == "subject-1"


def test_expired_token_rejected():
    token = issue_token("subject-1", ttl=timedelta(seconds=-5))
    assert token.is_expired()
    with pytest.raises(SessionExpired):
        validate_token(token.token)


def test_tampered_token_rejected():
    token = issue_token("subject-1")
    header, payload, signature = token.token.split(".")
    forged = jwt.encode(
        {"sub": "someone-else", "exp": 4102444800},
        "not-the-secret",
        algorithm=settings.jwt_algorithm,
    )
    with pytest.raises(SessionExpired):
        validate_token(forged)
    with pytest.raises(SessionExpired):
        validate_token(f"{header}.{forged.split('.')[1]}.{signature}")


def test_missing_token_rejected():
    with pytest.raises(SessionExpired):
        validate_token(None)
    with pytest.raises(SessionExpired):
        validate_token("")


def test_token_without_subject_rejected():
    encoded = jwt.encode({"exp": 4102444800}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    with pytest.raises(SessionExpired):
        validate_token(encoded)


def test_extract_bearer_token():
    assert extract_bearer_token({"Authorization": "Bearer abc"}) == "abc"
    assert extract_bearer_token({"authorization": "bearer abc "}) == "abc"
    assert extract_bearer_token({"Authorization": "Basic abc"}) is None
    assert extract_bearer_token({"Authorization": "Bearer "}) is None
    assert extract_bearer_token({}) is None


def test_password_hash_verification():
    hashed = hash_password("s3cret-pass")
    assert verify_password_hash("s3cret-pass", hashed)
    assert not verify_password_hash("wrong-pass", hashed)
    assert not verify_password_hash("s3cret-pass", "not-a-bcrypt-hash")


@pytest.mark.asyncio
async def test_authenticate_success_issues_token_for_user(session):
    user = await register_user(session, "alice", "correct-horse")

    token = await authenticate(session, Credentials(username="alice", password="correct-horse"))

    assert token.subject == user.subject
    assert validate_token(token.token) == user.subject
    assert user.last_login is not None


@pytest.mark.asyncio
async def test_authenticate_failures(session):
    await register_user(session, "alice", "correct-horse")

    with pytest.raises(AuthFailure):
        await authenticate(session, Credentials(username="alice", password="wrong"))
    with pytest.raises(AuthFailure):
        await authenticate(session, Credentials(username="nobody", password="whatever"))


@pytest.mark.asyncio
async def test_authenticate_inactive_user(session):
    user = await register_user(session, "alice", "correct-horse")
    user.is_active = False
    await session.flush()

    with pytest.raises(AuthFailure):
        await authenticate(session, Credentials(username="alice", password="correct-horse"))


@pytest.mark.asyncio
async def test_register_duplicate_username(session):
    await register_user(session, "alice", "correct-horse")
    with pytest.raises(UsernameTaken):
        await register_user(session, "alice", "another-pass")
