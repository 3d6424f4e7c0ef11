"""Client side of TaskGate: session, cache, transports and the mutation pipeline."""

from taskgate.client.backend import (
    HttpAuthenticator,
    HttpTaskBackend,
    LocalAuthenticator,
    LocalTaskBackend,
    TaskBackend,
)
from taskgate.client.cache import CacheSnapshot, ClientStateCache
from taskgate.client.pipeline import ListResult, Mutation, MutationPipeline, MutationResult
from taskgate.client.session import Authenticator, SessionManager

__all__ = [
    "Authenticator",
    "CacheSnapshot",
    "ClientStateCache",
    "HttpAuthenticator",
    "HttpTaskBackend",
    "ListResult",
    "LocalAuthenticator",
    "LocalTaskBackend",
    "Mutation",
    "MutationPipeline",
    "MutationResult",
    "SessionManager",
    "TaskBackend",
]
