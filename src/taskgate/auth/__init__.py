"""TaskGate authentication capability."""

from taskgate.auth.context import AuthContext
from taskgate.auth.models import User
from taskgate.auth.middleware import (
    extract_bearer_token,
    hash_password,
    register_user,
    verify_password_hash,
)
from taskgate.auth.token import authenticate, issue_token, validate_token

__all__ = [
    "AuthContext",
    "User",
    "authenticate",
    "extract_bearer_token",
    "hash_password",
    "issue_token",
    "register_user",
    "validate_token",
    "verify_password_hash",
]
