"""Session-bound, single-use CSRF tokens for Starlette and FastAPI apps."""

from __future__ import annotations

from formguard.application.failure import DefaultFailureHandler, FailureHandler
from formguard.application.token_manager import TokenManager
from formguard.domain.token import GuardOptions, TokenPair
from formguard.errors import ConfigurationError, CsrfError, EntropyUnavailableError
from formguard.infrastructure.http.guard import CsrfGuard
from formguard.infrastructure.http.middleware import CsrfMiddleware, get_token_pair
from formguard.infrastructure.state.token_store import InMemoryTokenStore, SessionTokenStore

__all__ = [
    "ConfigurationError",
    "CsrfError",
    "CsrfGuard",
    "CsrfMiddleware",
    "DefaultFailureHandler",
    "EntropyUnavailableError",
    "FailureHandler",
    "GuardOptions",
    "InMemoryTokenStore",
    "SessionTokenStore",
    "TokenManager",
    "TokenPair",
    "get_token_pair",
]
