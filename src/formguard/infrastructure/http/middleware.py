from __future__ import annotations

import logging
import secrets
from collections.abc import Callable

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from formguard.application.failure import FailureHandler
from formguard.application.ports.token_store import TokenStorePort
from formguard.domain.token import DEFAULT_PREFIX, GuardOptions, TokenPair
from formguard.infrastructure.http.guard import CsrfGuard, resolve_storage

logger = logging.getLogger("formguard.http")


class CsrfMiddleware(BaseHTTPMiddleware):
    """Starlette middleware running a fresh :class:`CsrfGuard` per request.

    Without explicit ``storage`` tokens live in the session, so Starlette's
    ``SessionMiddleware`` must wrap this middleware (add it afterwards).
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        options: GuardOptions | None = None,
        storage: TokenStorePort | None = None,
        failure_handler: FailureHandler | None = None,
        token_source: Callable[[int], str] = secrets.token_hex,
    ) -> None:
        super().__init__(app)
        self._options = options or GuardOptions()
        if storage is not None:
            resolve_storage(storage, None, self._options.prefix)
        self._storage = storage
        self._failure_handler = failure_handler
        self._token_source = token_source
        logger.debug(
            "csrf middleware configured",
            extra={
                "data": {
                    "prefix": self._options.prefix,
                    "storage_limit": self._options.storage_limit,
                    "strength": self._options.strength,
                    "persistent_token_mode": self._options.persistent_token_mode,
                    "storage": type(storage).__name__ if storage is not None else "session",
                },
            },
        )

    @property
    def options(self) -> GuardOptions:
        return self._options

    def build_guard(self, request: Request) -> CsrfGuard:
        session = request.scope.get("session") if self._storage is None else None
        return CsrfGuard(
            self._options,
            storage=self._storage,
            session=session,
            failure_handler=self._failure_handler,
            token_source=self._token_source,
        )

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        guard = self.build_guard(request)
        return await guard.process(request, call_next)


def get_token_pair(request: Request, prefix: str = DEFAULT_PREFIX) -> TokenPair | None:
    """Return the pair the guard attached to ``request``, if any."""
    prefix = prefix.rstrip("_")
    name = getattr(request.state, f"{prefix}_name", None)
    value = getattr(request.state, f"{prefix}_value", None)
    if name is None or value is None:
        return None
    return TokenPair(name=name, value=value)


__all__ = ["CsrfMiddleware", "get_token_pair"]
