"""
Authentication Utilities for TaskGate

Password hashing, bearer-token extraction and user lookup.
"""

from typing import Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.models import User
from taskgate.engine.errors import UsernameTaken


def hash_password(password: str) -> str:
    """Hash password with bcrypt"""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password_hash(password: str, password_hash: str) -> bool:
    """Verify password against hash"""
    try:
        return bcrypt.checkpw(password.encode(), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False


def extract_bearer_token(headers: dict) -> Optional[str]:
    """
    Extract a bearer token from request headers.

    Checks the Authorization header case-insensitively.
    Returns None if missing or not a Bearer credential.
    """
    auth_header = None
    for key, value in headers.items():
        if key.lower() == 'authorization':
            auth_header = value
            break

    if not auth_header:
        return None

    parts = auth_header.split(' ', 1)
    if len(parts) == 2 and parts[0].lower() == 'bearer' and parts[1].strip():
        return parts[1].strip()
    return None


async def get_user_by_username(db: AsyncSession, username: str) -> Optional[User]:
    result = await db.execute(
        select(User).where(User.username == username)
    )
    return result.scalar_one_or_none()


async def register_user(db: AsyncSession, username: str, password: str) -> User:
    """Create a new user account.

    Raises:
        UsernameTaken: If the username is already registered
    """
    if await get_user_by_username(db, username):
        raise UsernameTaken(username)

    user = User(
        username=username,
        password_hash=hash_password(password),
        is_active=True,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError:
        # Lost a race with a concurrent registration
        await db.rollback()
        raise UsernameTaken(username) from None

    await db.refresh(user)
    return user
