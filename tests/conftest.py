"""
Pytest fixtures for TaskGate tests.
"""

import os
import tempfile
from datetime import timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Ensure test config is set before importing taskgate modules.
os.environ.setdefault("TASKGATE_ENV", "development")
os.environ.setdefault(
    "TASKGATE_DATABASE_URL",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "taskgate-test.db"),
)

from taskgate.db.base import Base  # noqa: E402
import taskgate.auth.models  # noqa: E402,F401
import taskgate.db.tables  # noqa: E402,F401
from taskgate.engine.errors import AuthFailure, SessionExpired  # noqa: E402
from taskgate.models import Credentials, IdentityToken  # noqa: E402
from taskgate.observability.metrics import metrics  # noqa: E402
from taskgate.utils.time import utc_now  # noqa: E402


@pytest.fixture
async def engine(tmp_path):
    """Create a per-test SQLite engine and wire it into taskgate.db.base."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'taskgate.db'}")

    # Override global engine/session factory for dependency injection.
    from taskgate import db as db_module

    original_engine = db_module.base.engine
    original_factory = db_module.base.async_session_factory
    db_module.base.engine = engine
    db_module.base.async_session_factory = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    db_module.base.engine = original_engine
    db_module.base.async_session_factory = original_factory
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    """Provide a database session per test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield


@pytest.fixture
async def client(engine):
    """Async test client against the app; sessions come from the test engine."""
    from taskgate.main import app

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def register_and_login(client: AsyncClient, username: str, password: str = "correct-horse") -> dict:
    """Register a user through the API and return auth headers plus subject."""
    response = await client.post(
        "/v1/auth/register", json={"username": username, "password": password}
    )
    assert response.status_code == 201, response.text

    response = await client.post(
        "/v1/auth/token", json={"username": username, "password": password}
    )
    assert response.status_code == 200, response.text
    body = response.json()
    return {
        "subject": body["subject"],
        "headers": {"Authorization": f"Bearer {body['token']}"},
    }


class FakeAuthenticator:
    """In-memory authentication capability."""

    def __init__(self, ttl: timedelta = timedelta(hours=1)):
        self.ttl = ttl
        self.revoked: set[str] = set()
        self.calls = 0

    async def authenticate(self, credentials: Credentials) -> IdentityToken:
        self.calls += 1
        if credentials.password != "correct-horse":
            raise AuthFailure()
        now = utc_now().replace(microsecond=0)
        return IdentityToken(
            subject=f"user-{credentials.username}",
            issued_at=now,
            expires_at=now + self.ttl,
            token=f"token-{credentials.username}-{self.calls}",
        )

    async def validate(self, token: IdentityToken) -> str:
        if token.token in self.revoked:
            raise SessionExpired("Token revoked")
        return token.subject
