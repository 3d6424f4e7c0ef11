"""Client transports to the authoritative task store.

Two implementations of the same contract:

* ``HttpTaskBackend`` / ``HttpAuthenticator`` speak the REST API with httpx.
* ``LocalTaskBackend`` / ``LocalAuthenticator`` run the store in-process
  against a SQLAlchemy session factory.

Both translate every failure into the TaskGate error taxonomy.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

import httpx
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from taskgate.auth.token import authenticate, validate_token
from taskgate.db.base import get_session
from taskgate.engine import (
    AuthFailure,
    SessionExpired,
    TaskGateError,
    TaskNotFound,
    TaskStore,
    TaskValidationError,
    TransientFailure,
)
from taskgate.models import Credentials, IdentityToken, Task, TaskPatch

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TaskBackend(Protocol):
    """Operations the mutation pipeline issues against the store."""

    async def list_tasks(self, token: IdentityToken) -> list[Task]: ...

    async def create_task(self, token: IdentityToken, title: str) -> Task: ...

    async def update_task(self, token: IdentityToken, task_id: str, patch: TaskPatch) -> Task: ...

    async def delete_task(self, token: IdentityToken, task_id: str) -> None: ...


# ============================================================================
# HTTP
# ============================================================================


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str):
        return detail
    if detail is not None:
        return str(detail)
    return response.reason_phrase


def _raise_for_status(response: httpx.Response, task_id: Optional[str] = None) -> None:
    """Map an HTTP error response onto the error taxonomy."""
    status = response.status_code
    if status < 400:
        return
    if status == 401:
        raise SessionExpired(_detail(response))
    if status == 404:
        raise TaskNotFound(task_id or "")
    if status in (400, 422):
        raise TaskValidationError(_detail(response))
    if status >= 500 or status == 429:
        raise TransientFailure(f"Server error {status}: {_detail(response)}")
    raise TaskGateError(_detail(response), f"HTTP_{status}")


async def _send(client: httpx.AsyncClient, method: str, path: str, **kwargs: Any) -> httpx.Response:
    try:
        return await client.request(method, path, **kwargs)
    except httpx.TimeoutException as exc:
        raise TransientFailure(f"{method} {path} timed out") from exc
    except httpx.TransportError as exc:
        raise TransientFailure(f"{method} {path} failed: {exc}") from exc


class HttpTaskBackend:
    """Task operations over the REST API.

    The client is expected to carry ``base_url``; every request attaches the
    caller's identity token.
    """

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def list_tasks(self, token: IdentityToken) -> list[Task]:
        response = await _send(self.client, "GET", "/v1/tasks", headers=token.authorization_header())
        _raise_for_status(response)
        return [Task(**item) for item in response.json()["tasks"]]

    async def create_task(self, token: IdentityToken, title: str) -> Task:
        response = await _send(
            self.client,
            "POST",
            "/v1/tasks",
            json={"title": title},
            headers=token.authorization_header(),
        )
        _raise_for_status(response)
        return Task(**response.json())

    async def update_task(self, token: IdentityToken, task_id: str, patch: TaskPatch) -> Task:
        response = await _send(
            self.client,
            "PATCH",
            f"/v1/tasks/{task_id}",
            json=patch.changes(),
            headers=token.authorization_header(),
        )
        _raise_for_status(response, task_id)
        return Task(**response.json())

    async def delete_task(self, token: IdentityToken, task_id: str) -> None:
        response = await _send(
            self.client,
            "DELETE",
            f"/v1/tasks/{task_id}",
            headers=token.authorization_header(),
        )
        _raise_for_status(response, task_id)


class HttpAuthenticator:
    """Authentication capability reached over the REST API."""

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def authenticate(self, credentials: Credentials) -> IdentityToken:
        response = await _send(
            self.client,
            "POST",
            "/v1/auth/token",
            json={"username": credentials.username, "password": credentials.password},
        )
        if response.status_code in (401, 422):
            raise AuthFailure(_detail(response))
        _raise_for_status(response)

        body = response.json()
        return IdentityToken(
            subject=body["subject"],
            issued_at=body["issued_at"],
            expires_at=body["expires_at"],
            token=body["token"],
        )

    async def validate(self, token: IdentityToken) -> str:
        response = await _send(
            self.client, "GET", "/v1/auth/whoami", headers=token.authorization_header()
        )
        _raise_for_status(response)
        return response.json()["subject"]


# ============================================================================
# In-process
# ============================================================================


class LocalTaskBackend:
    """Task operations run directly against the database.

    The token is validated exactly as the API dependency does, and each
    operation commits before returning.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self.session_factory = session_factory

    async def _run(
        self,
        token: IdentityToken,
        operation: Callable[[TaskStore, str], Awaitable[T]],
    ) -> T:
        subject = validate_token(token.token)
        try:
            async with get_session(self.session_factory) as session:
                return await operation(TaskStore(session), subject)
        except OperationalError as exc:
            logger.warning("Database unavailable: %s", exc)
            raise TransientFailure("Database unavailable") from exc

    async def list_tasks(self, token: IdentityToken) -> list[Task]:
        return await self._run(token, lambda store, subject: store.list(subject))

    async def create_task(self, token: IdentityToken, title: str) -> Task:
        return await self._run(token, lambda store, subject: store.create(subject, title))

    async def update_task(self, token: IdentityToken, task_id: str, patch: TaskPatch) -> Task:
        return await self._run(token, lambda store, subject: store.update(subject, task_id, patch))

    async def delete_task(self, token: IdentityToken, task_id: str) -> None:
        await self._run(token, lambda store, subject: store.delete(subject, task_id))


class LocalAuthenticator:
    """Authentication capability run in-process."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
        self.session_factory = session_factory

    async def authenticate(self, credentials: Credentials) -> IdentityToken:
        async with get_session(self.session_factory) as session:
            return await authenticate(session, credentials)

    async def validate(self, token: IdentityToken) -> str:
        return validate_token(token.token)
