"""Authentication context helpers."""

from dataclasses import dataclass


@dataclass(frozen=True)
class AuthContext:
    """Authentication context for the current request."""

    subject: str
    token: str
