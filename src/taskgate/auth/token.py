"""Identity token issuance and verification."""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from taskgate.auth.middleware import get_user_by_username, verify_password_hash
from taskgate.config import settings
from taskgate.engine.errors import AuthFailure, SessionExpired
from taskgate.models import Credentials, IdentityToken
from taskgate.utils.time import utc_now

logger = logging.getLogger("taskgate.auth")

_key_cache: dict[str, str] = {}

# Keeps bcrypt timing similar for unknown usernames.
_DUMMY_HASH = "$2b$12$C6UzMDM.H6dfI/f/IKcEeO5Q8q3mH3Gp9H/3ZpT1rXyq1E4Wl8v7K"


def _read_key(path: str) -> str:
    if path not in _key_cache:
        with open(path, "r", encoding="utf-8") as handle:
            _key_cache[path] = handle.read()
    return _key_cache[path]


def _signing_key() -> str:
    if settings.jwt_algorithm.startswith("HS"):
        return settings.jwt_secret
    if settings.jwt_private_key_path:
        return _read_key(settings.jwt_private_key_path)
    raise RuntimeError("JWT signing key not configured")


def _verification_key() -> str:
    if settings.jwt_algorithm.startswith("HS"):
        return settings.jwt_secret
    if settings.jwt_public_key_path:
        return _read_key(settings.jwt_public_key_path)
    if settings.jwt_private_key_path:
        return _read_key(settings.jwt_private_key_path)
    raise SessionExpired("JWT verification key not configured")


def issue_token(subject: str, ttl: Optional[timedelta] = None) -> IdentityToken:
    """Sign a new identity token for subject."""
    issued_at = utc_now()
    expires_at = issued_at + (ttl or timedelta(minutes=settings.jwt_access_token_ttl_minutes))
    claims = {
        "sub": subject,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
        "jti": uuid.uuid4().hex,
    }
    encoded = jwt.encode(claims, _signing_key(), algorithm=settings.jwt_algorithm)
    return IdentityToken(
        subject=subject,
        issued_at=issued_at.replace(microsecond=0),
        expires_at=expires_at.replace(microsecond=0),
        token=encoded,
    )


def validate_token(token: str | None) -> str:
    """Verify a presented token and return its subject.

    Raises:
        SessionExpired: For missing, malformed, tampered or expired tokens
    """
    if not token:
        raise SessionExpired("Missing authorization token")

    try:
        payload = jwt.decode(
            token,
            _verification_key(),
            algorithms=[settings.jwt_algorithm],
            options={"verify_aud": False},
        )
    except ExpiredSignatureError as exc:
        raise SessionExpired("Token expired") from exc
    except JWTError as exc:
        raise SessionExpired(f"Invalid token: {exc}") from exc

    subject = payload.get("sub")
    if not subject or not isinstance(subject, str):
        raise SessionExpired("Token has no subject")
    return subject


async def authenticate(session: AsyncSession, credentials: Credentials) -> IdentityToken:
    """Verify credentials and issue a token for the matching user.

    Raises:
        AuthFailure: Unknown user, wrong password or inactive account
    """
    user = await get_user_by_username(session, credentials.username)
    if user is None:
        verify_password_hash(credentials.password, _DUMMY_HASH)
        raise AuthFailure()

    if not verify_password_hash(credentials.password, user.password_hash):
        logger.info("Rejected credentials for %s", credentials.username)
        raise AuthFailure()

    if not user.is_active:
        raise AuthFailure("Account is inactive")

    user.record_login()
    await session.flush()
    return issue_token(user.subject)
