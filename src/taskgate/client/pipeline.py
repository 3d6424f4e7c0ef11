"""Mutation pipeline - optimistic client writes reconciled against the task store.

Every create, update and delete moves through the same state machine:

    PENDING -> CONFIRMED   store accepted; cache holds the canonical record
    PENDING -> REJECTED    store refused or was unreachable; cache reverted

The optimistic write, the backend round trip and the reconcile/revert for a
given task key all happen while holding that key's lock, so a later
mutation never has its optimistic value overwritten by an earlier result.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import uuid4

from taskgate.client.backend import TaskBackend
from taskgate.client.cache import ClientStateCache
from taskgate.client.session import SessionManager
from taskgate.config import settings
from taskgate.engine.core import validate_title
from taskgate.engine.errors import (
    InvalidStateTransition,
    SessionExpired,
    SessionStorageError,
    TaskGateError,
    TaskNotFound,
    TransientFailure,
)
from taskgate.models import FailureKind, IdentityToken, MutationKind, MutationState, Task, TaskPatch
from taskgate.observability import metrics
from taskgate.utils.time import utc_now

logger = logging.getLogger("taskgate.pipeline")

T = TypeVar("T")

Optimistic = Callable[[Optional[Task]], Optional[Task]]
BackendCall = Callable[[IdentityToken, str], Awaitable[Optional[Task]]]


@dataclass(frozen=True)
class MutationResult:
    """Terminal outcome of a mutation, as reported to the caller."""

    mutation_id: str
    kind: MutationKind
    key: str
    state: MutationState
    task: Optional[Task] = None
    failure: Optional[FailureKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state == MutationState.CONFIRMED

    @property
    def retryable(self) -> bool:
        """True when the caller may safely issue the same mutation again."""
        return self.failure is not None and self.failure.retryable


@dataclass
class Mutation:
    """A single client-initiated change and its lifecycle state."""

    kind: MutationKind
    key: str
    id: str = field(default_factory=lambda: uuid4().hex)
    state: MutationState = MutationState.PENDING
    task: Optional[Task] = None
    failure: Optional[FailureKind] = None
    message: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)

    def _transition(self, new_state: MutationState) -> None:
        if self.state.is_terminal():
            raise InvalidStateTransition(self.state.value, new_state.value)
        self.state = new_state

    def confirm(self, task: Optional[Task]) -> None:
        self._transition(MutationState.CONFIRMED)
        self.task = task

    def reject(self, failure: FailureKind, message: str) -> None:
        self._transition(MutationState.REJECTED)
        self.failure = failure
        self.message = message

    def outcome(self) -> MutationResult:
        return MutationResult(
            mutation_id=self.id,
            kind=self.kind,
            key=self.key,
            state=self.state,
            task=self.task,
            failure=self.failure,
            message=self.message,
        )


@dataclass(frozen=True)
class ListResult:
    """Outcome of a cache refresh."""

    tasks: list[Task]
    failure: Optional[FailureKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


class MutationPipeline:
    """Sequences task mutations between the client cache and the store.

    Mutations on the same key run strictly one after another; mutations on
    different keys run concurrently. Once a mutation has been handed to the
    pipeline it runs to completion even if the awaiting caller is
    cancelled; only the caller's view of the result is lost.

    A create is cached under a temporary key until the store assigns the
    real id. Mutations issued against the temporary key in the meantime
    queue behind the create and are redirected to the real id once it is
    known. The alias is dropped as soon as nothing is queued on the
    temporary key; a later mutation on it reaches the store and resolves
    as NOT_FOUND.
    """

    def __init__(
        self,
        session: SessionManager,
        backend: TaskBackend,
        cache: Optional[ClientStateCache] = None,
        timeout: Optional[float] = None,
    ):
        self.session = session
        self.backend = backend
        self.cache = cache if cache is not None else ClientStateCache()
        self.timeout = timeout if timeout is not None else settings.mutation_timeout_seconds

        self._locks: dict[str, asyncio.Lock] = {}
        self._waiting: dict[str, int] = {}
        # temporary create key -> canonical key, or None if the create failed
        self._aliases: dict[str, Optional[str]] = {}
        # keys whose cache entry currently holds an unconfirmed value
        self._dirty: set[str] = set()
        self._in_flight: dict[str, Mutation] = {}
        self._runners: set[asyncio.Future] = set()

    # ---- public operations ----

    async def refresh(self) -> ListResult:
        """Reload the cache from the store, keeping unconfirmed local values."""
        try:
            token = self.session.require_valid()
            tasks = await self._call(self.backend.list_tasks(token))
        except TaskGateError as exc:
            if isinstance(exc, SessionExpired):
                self._expire_session()
            logger.warning("Refresh failed: %s", exc.message)
            return ListResult(
                tasks=self.cache.tasks(),
                failure=exc.kind or FailureKind.TRANSIENT,
                message=exc.message,
            )

        merged = {str(task.id): task for task in tasks}
        for key in self._dirty:
            current = self.cache.get(key)
            if current is None:
                merged.pop(key, None)
            else:
                merged[key] = current
        self.cache.replace_all(merged.values())
        return ListResult(tasks=self.cache.tasks())

    async def create(self, title: str) -> MutationResult:
        """Create a task. The cache shows it immediately under a temporary key."""
        key = str(uuid4())
        mutation = Mutation(kind=MutationKind.CREATE, key=key)
        try:
            title = validate_title(title)
        except TaskGateError as exc:
            return self._reject_early(mutation, exc)

        def optimistic(_current: Optional[Task]) -> Task:
            now = utc_now()
            return Task(
                id=key,
                owner=self.session.subject or "",
                title=title,
                created_at=now,
                updated_at=now,
            )

        async def call(token: IdentityToken, _key: str) -> Task:
            return await self.backend.create_task(token, title)

        return await self._submit(mutation, optimistic, call)

    async def update(self, task_id: str, patch: TaskPatch) -> MutationResult:
        """Apply a partial update to a task."""
        mutation = Mutation(kind=MutationKind.UPDATE, key=str(task_id))
        if patch.title is not None:
            try:
                patch = patch.model_copy(update={"title": validate_title(patch.title)})
            except TaskGateError as exc:
                return self._reject_early(mutation, exc)

        def optimistic(current: Optional[Task]) -> Optional[Task]:
            return patch.apply_to(current, updated_at=utc_now()) if current else None

        async def call(token: IdentityToken, key: str) -> Task:
            return await self.backend.update_task(token, key, patch)

        return await self._submit(mutation, optimistic, call)

    async def delete(self, task_id: str) -> MutationResult:
        """Delete a task. It disappears from the cache immediately."""
        mutation = Mutation(kind=MutationKind.DELETE, key=str(task_id))

        async def call(token: IdentityToken, key: str) -> None:
            await self.backend.delete_task(token, key)
            return None

        return await self._submit(mutation, lambda _current: None, call)

    def in_flight(self) -> list[Mutation]:
        """Mutations that have been submitted but not yet resolved."""
        return list(self._in_flight.values())

    async def drain(self) -> None:
        """Wait until every submitted mutation has resolved."""
        while self._runners:
            await asyncio.gather(*list(self._runners))

    # ---- execution ----

    async def _submit(
        self,
        mutation: Mutation,
        optimistic: Optimistic,
        call: BackendCall,
    ) -> MutationResult:
        self._in_flight[mutation.id] = mutation
        metrics.set_gauge("pipeline.in_flight", len(self._in_flight))

        runner = asyncio.ensure_future(self._run(mutation, optimistic, call))
        self._runners.add(runner)
        runner.add_done_callback(self._runners.discard)
        return await asyncio.shield(runner)

    async def _run(
        self,
        mutation: Mutation,
        optimistic: Optimistic,
        call: BackendCall,
    ) -> MutationResult:
        key = await self._acquire(mutation.key)
        try:
            if key in self._aliases and mutation.kind != MutationKind.CREATE:
                # the create this key was issued for never reached the store
                mutation.reject(FailureKind.NOT_FOUND, TaskNotFound(key).message)
            else:
                await self._execute(mutation, key, optimistic, call)
        finally:
            self._release(key)
            self._in_flight.pop(mutation.id, None)
            metrics.set_gauge("pipeline.in_flight", len(self._in_flight))

        self._record(mutation)
        return mutation.outcome()

    async def _execute(
        self,
        mutation: Mutation,
        key: str,
        optimistic: Optimistic,
        call: BackendCall,
    ) -> None:
        snapshot = self.cache.snapshot_of(key)
        value = optimistic(snapshot.task)
        if snapshot.task is not None or value is not None:
            self.cache.apply_optimistic(key, value)
            self._dirty.add(key)

        try:
            token = self.session.require_valid()
            canonical = await self._call(call(token, key))
        except TaskGateError as exc:
            self.cache.revert(snapshot)
            if isinstance(exc, SessionExpired):
                self._expire_session()
            mutation.reject(exc.kind or FailureKind.TRANSIENT, exc.message)
        except Exception as exc:
            logger.exception("Unexpected failure during %s of %s", mutation.kind.value, key)
            self.cache.revert(snapshot)
            mutation.reject(FailureKind.TRANSIENT, f"Unexpected error: {exc}")
        else:
            self.cache.reconcile(key, canonical)
            mutation.confirm(canonical)
        finally:
            self._dirty.discard(key)

        if mutation.kind == MutationKind.CREATE:
            self._aliases[key] = str(mutation.task.id) if mutation.task else None

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise TransientFailure(f"No response from task store within {self.timeout}s") from exc

    def _reject_early(self, mutation: Mutation, exc: TaskGateError) -> MutationResult:
        mutation.reject(exc.kind or FailureKind.TRANSIENT, exc.message)
        self._record(mutation)
        return mutation.outcome()

    def _record(self, mutation: Mutation) -> None:
        metrics.inc_counter(f"pipeline.mutation.{mutation.state.value}")
        if mutation.state == MutationState.REJECTED:
            logger.info(
                "Mutation %s (%s %s) rejected: %s",
                mutation.id,
                mutation.kind.value,
                mutation.key,
                mutation.failure.value if mutation.failure else "unknown",
            )

    def _expire_session(self) -> None:
        try:
            self.session.invalidate()
        except SessionStorageError as exc:
            logger.error("Could not erase expired session: %s", exc.message)

    # ---- per-key serialization ----

    async def _acquire(self, key: str) -> str:
        """Lock key, following a temporary create key to its canonical id."""
        while True:
            lock = self._locks.setdefault(key, asyncio.Lock())
            self._waiting[key] = self._waiting.get(key, 0) + 1
            try:
                await lock.acquire()
            except BaseException:
                self._forget(key)
                raise

            canonical = self._aliases.get(key)
            if canonical is None or canonical == key:
                return key
            self._release(key)
            key = canonical

    def _release(self, key: str) -> None:
        self._locks[key].release()
        self._forget(key)

    def _forget(self, key: str) -> None:
        self._waiting[key] -= 1
        if not self._waiting[key]:
            del self._waiting[key]
            del self._locks[key]
            # nothing is queued on a temporary key any more
            self._aliases.pop(key, None)

    def __repr__(self) -> str:
        return f"<MutationPipeline in_flight={len(self._in_flight)} cached={len(self.cache)}>"
