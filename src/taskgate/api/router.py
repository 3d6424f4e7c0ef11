"""REST API router."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate import __version__
from taskgate.api.deps import get_auth_context, get_db_session, get_task_store
from taskgate.api.schemas import (
    CreateTaskRequest,
    HealthResponse,
    ListTasksResponse,
    MetricsResponse,
    RegisterRequest,
    RegisterResponse,
    TaskResponse,
    TokenRequest,
    TokenResponse,
    UpdateTaskRequest,
    WhoAmIResponse,
)
from taskgate.auth.context import AuthContext
from taskgate.auth.middleware import register_user
from taskgate.auth.token import authenticate
from taskgate.engine import (
    AuthFailure,
    TaskNotFound,
    TaskStore,
    TaskValidationError,
    UsernameTaken,
)
from taskgate.models import Credentials, TaskPatch
from taskgate.observability.metrics import metrics

logger = logging.getLogger("taskgate.api")

router = APIRouter(prefix="/v1")


# ============================================================================
# Health & Metrics
# ============================================================================


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


@router.get("/metrics", response_model=MetricsResponse)
async def get_metrics(auth: AuthContext = Depends(get_auth_context)):
    """Snapshot of in-process metrics."""
    return MetricsResponse(**metrics.snapshot())


# ============================================================================
# Authentication
# ============================================================================


@router.post("/auth/register", response_model=RegisterResponse, status_code=201)
async def register(
    request: RegisterRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Register a new user."""
    try:
        user = await register_user(session, request.username, request.password)
    except UsernameTaken as e:
        raise HTTPException(status_code=409, detail=e.message)

    await session.commit()
    logger.info("Registered user %s", user.subject)
    return RegisterResponse(subject=user.subject, username=user.username)


@router.post("/auth/token", response_model=TokenResponse)
async def issue_token(
    request: TokenRequest,
    session: AsyncSession = Depends(get_db_session),
):
    """Exchange credentials for an identity token."""
    try:
        token = await authenticate(
            session,
            Credentials(username=request.username, password=request.password),
        )
    except AuthFailure as e:
        metrics.inc_counter("auth.failure")
        raise HTTPException(
            status_code=401,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )

    await session.commit()
    return TokenResponse(
        subject=token.subject,
        token=token.token,
        issued_at=token.issued_at,
        expires_at=token.expires_at,
    )


@router.get("/auth/whoami", response_model=WhoAmIResponse)
async def whoami(auth: AuthContext = Depends(get_auth_context)):
    """Return the subject of the presented token."""
    return WhoAmIResponse(subject=auth.subject)


# ============================================================================
# Tasks
# ============================================================================


@router.get("/tasks", response_model=ListTasksResponse)
async def list_tasks(
    auth: AuthContext = Depends(get_auth_context),
    store: TaskStore = Depends(get_task_store),
):
    """List the caller's tasks, oldest first."""
    tasks = await store.list(auth.subject)
    return ListTasksResponse(tasks=[TaskResponse.from_task(t) for t in tasks])


@router.post("/tasks", response_model=TaskResponse, status_code=201)
async def create_task(
    request: CreateTaskRequest,
    auth: AuthContext = Depends(get_auth_context),
    store: TaskStore = Depends(get_task_store),
):
    """Create a task owned by the caller."""
    try:
        task = await store.create(auth.subject, request.title)
    except TaskValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)

    await store.commit()
    return TaskResponse.from_task(task)


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: str,
    auth: AuthContext = Depends(get_auth_context),
    store: TaskStore = Depends(get_task_store),
):
    """Get one of the caller's tasks."""
    try:
        task = await store.get(auth.subject, task_id)
    except TaskNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return TaskResponse.from_task(task)


@router.patch("/tasks/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: str,
    request: UpdateTaskRequest,
    auth: AuthContext = Depends(get_auth_context),
    store: TaskStore = Depends(get_task_store),
):
    """Update title and/or completion state of one of the caller's tasks."""
    patch = TaskPatch(title=request.title, completed=request.completed)
    try:
        task = await store.update(auth.subject, task_id, patch)
    except TaskNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except TaskValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)

    await store.commit()
    return TaskResponse.from_task(task)


@router.delete("/tasks/{task_id}", status_code=204)
async def delete_task(
    task_id: str,
    auth: AuthContext = Depends(get_auth_context),
    store: TaskStore = Depends(get_task_store),
):
    """Hard-delete one of the caller's tasks."""
    try:
        await store.delete(auth.subject, task_id)
    except TaskNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)

    await store.commit()
    return Response(status_code=204)
