"""API dependencies."""

import logging
from typing import AsyncGenerator

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.context import AuthContext
from taskgate.auth.middleware import extract_bearer_token
from taskgate.auth.token import validate_token
from taskgate.config import Environment, settings
from taskgate.db import base as db_base
from taskgate.engine import SessionExpired, TaskStore


logger = logging.getLogger("taskgate.api")


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session; commits before the response is sent."""
    async with db_base.async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_auth_context(
    authorization: str | None = Header(None),
) -> AuthContext:
    """
    Resolve the request's subject from its bearer token.

    Any invalid, tampered or expired token is a 401; the client is
    expected to discard its session and re-authenticate.
    """
    token = extract_bearer_token({"authorization": authorization} if authorization else {})
    try:
        subject = validate_token(token)
    except SessionExpired as e:
        raise HTTPException(
            status_code=401,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthContext(subject=subject, token=token)


async def get_task_store(
    session: AsyncSession = Depends(get_db_session),
) -> TaskStore:
    return TaskStore(session)


def validate_auth_config() -> None:
    """
    Validate authentication configuration at startup.

    Raises:
        RuntimeError: If tokens would be signed with the development secret
            outside development
    """
    if settings.uses_dev_secret and settings.env != Environment.DEVELOPMENT:
        raise RuntimeError(
            f"SECURITY ERROR: the built-in development JWT secret is only permitted in development. "
            f"Current environment: {settings.env.value}. "
            f"Set TASKGATE_JWT_SECRET for {settings.env.value}."
        )

    if settings.uses_dev_secret:
        logger.warning(
            "Running with the development JWT secret; tokens are forgeable. "
            "Set TASKGATE_JWT_SECRET for any deployment."
        )
    else:
        logger.info(
            f"Token authentication enabled ({settings.jwt_algorithm}) for {settings.env.value}"
        )
