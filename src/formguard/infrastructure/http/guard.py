"""Per-request CSRF guard: validate, rotate or persist, then forward."""

from __future__ import annotations

import json
import logging
import secrets
from collections.abc import Callable, Mapping, MutableMapping
from typing import Any

from starlette.middleware.base import RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from formguard.application.failure import DefaultFailureHandler, FailureHandler
from formguard.application.ports.token_store import TokenStorePort, is_token_store
from formguard.application.token_manager import TokenManager
from formguard.domain.token import GuardOptions, TokenPair
from formguard.errors import ConfigurationError
from formguard.infrastructure.state.token_store import SessionTokenStore

logger = logging.getLogger("formguard.guard")

MUTATING_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})
FORM_MEDIA_TYPES = frozenset({"application/x-www-form-urlencoded", "multipart/form-data"})


def resolve_storage(
    storage: TokenStorePort | None,
    session: MutableMapping[str, Any] | None,
    prefix: str,
) -> TokenStorePort:
    """Pick the caller's store, else the session bucket named after ``prefix``."""
    if storage is not None:
        if not is_token_store(storage):
            raise ConfigurationError(
                f"Invalid CSRF storage {type(storage).__name__!r}: "
                "expected a mapping supporting get/set/delete/contains"
            )
        return storage
    if session is None:
        raise ConfigurationError(
            "Invalid CSRF storage. Install SessionMiddleware outside the CSRF "
            "middleware or provide explicit storage."
        )
    return SessionTokenStore(session, prefix)


class CsrfGuard:
    """Runs the CSRF check for one request.

    A guard holds the request's active key pair, so build one per request;
    the store it points at is what carries tokens from one request to the next.
    """

    def __init__(
        self,
        options: GuardOptions | None = None,
        *,
        storage: TokenStorePort | None = None,
        session: MutableMapping[str, Any] | None = None,
        failure_handler: FailureHandler | None = None,
        token_source: Callable[[int], str] = secrets.token_hex,
    ) -> None:
        self._options = options or GuardOptions()
        self._storage = resolve_storage(storage, session, self._options.prefix)
        self._tokens = TokenManager(self._storage, self._options, token_source=token_source)
        self._failure_handler = failure_handler or DefaultFailureHandler()
        self._key_pair: TokenPair | None = None

    # ------------------------------------------------------------------
    # accessors

    @property
    def options(self) -> GuardOptions:
        return self._options

    @property
    def storage(self) -> TokenStorePort:
        return self._storage

    @property
    def tokens(self) -> TokenManager:
        return self._tokens

    @property
    def key_pair(self) -> TokenPair | None:
        return self._key_pair

    @property
    def token_name(self) -> str | None:
        return self._key_pair.name if self._key_pair else None

    @property
    def token_value(self) -> str | None:
        return self._key_pair.value if self._key_pair else None

    @property
    def token_name_key(self) -> str:
        return self._options.name_key

    @property
    def token_value_key(self) -> str:
        return self._options.value_key

    @property
    def persistent_token_mode(self) -> bool:
        return self._options.persistent_token_mode

    # ------------------------------------------------------------------
    # token handling

    def generate_token(self) -> TokenPair:
        """Issue a new pair and make it the active one."""
        self._key_pair = self._tokens.generate_token()
        return self._key_pair

    def validate_token(self, name: str, value: str) -> bool:
        return self._tokens.validate_token(name, value)

    def append_new_token_to_request(self, request: Request) -> TokenPair:
        """Issue a new pair and expose it on ``request.state``."""
        pair = self.generate_token()
        self._append_token_to_request(request, pair)
        return pair

    def _append_token_to_request(self, request: Request, pair: TokenPair) -> None:
        setattr(request.state, self._options.name_key, pair.name)
        setattr(request.state, self._options.value_key, pair.value)

    def _load_last_key_pair(self) -> bool:
        self._key_pair = self._tokens.load_last_key_pair()
        return self._key_pair is not None

    # ------------------------------------------------------------------
    # request processing

    async def process(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check the token and forward; non-persistent mode consumes a validated token."""
        if request.method in MUTATING_METHODS:
            name, value = await self._submitted_token(request)
            if not (
                isinstance(name, str)
                and isinstance(value, str)
                and self._tokens.validate_token(name, value)
            ):
                return await self._reject(request, call_next, name, value)
            if not self._options.persistent_token_mode:
                self._tokens.remove_token(name)

        if not self._options.persistent_token_mode or not self._load_last_key_pair():
            self.append_new_token_to_request(request)
        elif self._key_pair is not None:
            self._append_token_to_request(request, self._key_pair)

        self._tokens.enforce_storage_limit()

        return await call_next(request)

    async def _reject(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
        name: object,
        value: object,
    ) -> Response:
        # Evicted in both modes: a name that failed once is never checked again.
        if isinstance(name, str):
            self._tokens.remove_token(name)

        self.append_new_token_to_request(request)
        self._tokens.enforce_storage_limit()
        logger.warning(
            "csrf_validation_failed",
            extra={
                "data": {
                    "request_line": _format_request_line(request),
                    "method": request.method,
                    "path": request.url.path,
                    "reason": _failure_reason(name, value),
                },
            },
        )
        return await self.handle_failure(request, call_next)

    async def handle_failure(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        return await self._failure_handler.handle(request, call_next)

    async def _submitted_token(self, request: Request) -> tuple[object, object]:
        body = await _parsed_body(request)
        if body is None:
            return None, None
        return body.get(self._options.name_key), body.get(self._options.value_key)


async def _parsed_body(request: Request) -> Mapping[str, object] | None:
    content_type = request.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()

    if media_type in FORM_MEDIA_TYPES:
        # Cache the raw body first so the downstream app can read it again.
        await request.body()
        return await request.form()

    if media_type == "application/json" or media_type.endswith("+json"):
        raw = await request.body()
        if not raw:
            return None
        try:
            payload = json.loads(raw)
        except ValueError:
            return None
        return payload if isinstance(payload, dict) else None

    return None


def _failure_reason(name: object, value: object) -> str:
    if name is None or value is None:
        return "missing_token"
    if not isinstance(name, str) or not isinstance(value, str):
        return "malformed_token"
    return "token_mismatch"


def _format_request_line(request: Request) -> str:
    query = request.url.query
    if query:
        return f"{request.method} {request.url.path}?{query}"
    return f"{request.method} {request.url.path}"


__all__ = ["CsrfGuard", "FORM_MEDIA_TYPES", "MUTATING_METHODS", "resolve_storage"]
