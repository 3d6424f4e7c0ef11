"""Client session management - acquire, persist, restore and drop identity tokens."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional, Protocol

from pydantic import ValidationError

from taskgate.config import settings
from taskgate.engine.errors import SessionExpired, SessionStorageError
from taskgate.models import Credentials, IdentityToken

logger = logging.getLogger("taskgate.session")

STORAGE_VERSION = 1


class Authenticator(Protocol):
    """The external authentication capability."""

    async def authenticate(self, credentials: Credentials) -> IdentityToken:
        """Exchange credentials for a token; raises AuthFailure."""
        ...

    async def validate(self, token: IdentityToken) -> str:
        """Return the token's subject; raises SessionExpired."""
        ...


class SessionManager:
    """Owns the client's single identity token across process restarts.

    Constructed once per process and passed explicitly to whatever needs
    identity. Storage holds exactly one token record, overwritten on
    re-login and erased on logout.

    Read problems (missing, unreadable or corrupt storage) mean "no
    session" and are logged; write and erase problems raise
    SessionStorageError.
    """

    def __init__(self, authenticator: Authenticator, storage_path: Optional[Path | str] = None):
        self.authenticator = authenticator
        self.storage_path = Path(storage_path) if storage_path else settings.session_file
        self._token: Optional[IdentityToken] = None
        self.last_error: Optional[str] = None

    @property
    def subject(self) -> Optional[str]:
        return self._token.subject if self._token else None

    async def acquire(self, credentials: Credentials) -> IdentityToken:
        """Authenticate and persist the resulting token before returning it.

        Raises:
            AuthFailure: Credentials rejected
            SessionStorageError: Token could not be persisted
        """
        token = await self.authenticator.authenticate(credentials)
        self._write(token)
        self._token = token
        self.last_error = None
        logger.info("Session acquired for subject %s", token.subject)
        return token

    def restore(self, now: Optional[datetime] = None) -> Optional[IdentityToken]:
        """Load the persisted token at process start.

        Returns None when nothing usable is stored; callers treat that
        exactly like never having logged in.
        """
        token = self._read()
        if token is None:
            return None

        if token.is_expired(now):
            logger.info("Persisted session for %s has expired", token.subject)
            try:
                self.invalidate()
            except SessionStorageError:
                logger.error("Expired session could not be erased: %s", self.last_error)
            return None

        self._token = token
        return token

    def invalidate(self) -> None:
        """Forget the token in memory and erase it from storage. Idempotent."""
        self._token = None
        try:
            self.storage_path.unlink(missing_ok=True)
        except OSError as exc:
            self.last_error = str(exc)
            raise SessionStorageError(f"Could not erase session at {self.storage_path}: {exc}") from exc
        logger.info("Session invalidated")

    def current(self) -> Optional[IdentityToken]:
        """Return the live token without checking expiry."""
        return self._token

    def require_valid(self, now: Optional[datetime] = None) -> IdentityToken:
        """Return the live token if it may still be presented to the store.

        Raises:
            SessionExpired: No token, or the token has expired (the session
                is invalidated first)
        """
        token = self._token
        if token is None:
            raise SessionExpired("Not signed in")

        if token.is_expired(now):
            try:
                self.invalidate()
            except SessionStorageError:
                logger.error("Expired session could not be erased: %s", self.last_error)
            raise SessionExpired("Session expired")
        return token

    async def verify(self) -> str:
        """Ask the authentication capability whether the live token still holds.

        Raises:
            SessionExpired: Token missing, expired locally, or rejected remotely
        """
        token = self.require_valid()
        try:
            return await self.authenticator.validate(token)
        except SessionExpired:
            self.invalidate()
            raise

    # ---- storage ----

    def _write(self, token: IdentityToken) -> None:
        record = {"version": STORAGE_VERSION, **token.model_dump(mode="json")}
        directory = self.storage_path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".session-", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    json.dump(record, handle)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self.storage_path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except OSError as exc:
            self.last_error = str(exc)
            raise SessionStorageError(f"Could not persist session to {self.storage_path}: {exc}") from exc

    def _read(self) -> Optional[IdentityToken]:
        try:
            raw = self.storage_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            self.last_error = str(exc)
            logger.warning("Could not read session at %s: %s", self.storage_path, exc)
            return None
        except UnicodeDecodeError as exc:
            self.last_error = str(exc)
            logger.warning("Ignoring undecodable session at %s: %s", self.storage_path, exc)
            return None

        try:
            record = json.loads(raw)
            if not isinstance(record, dict) or record.get("version") != STORAGE_VERSION:
                raise ValueError("unrecognised session record")
            record.pop("version")
            return IdentityToken.model_validate(record)
        except (ValueError, ValidationError) as exc:
            self.last_error = str(exc)
            logger.warning("Ignoring corrupt session at %s: %s", self.storage_path, exc)
            return None
