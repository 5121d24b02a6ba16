"""CSRF token issuance, validation and storage bounding."""

from __future__ import annotations

import hmac
import logging
import secrets
from collections.abc import Callable
from typing import cast
from uuid import uuid4

from formguard.application.ports.token_store import (
    OrderedCountableTokenStore,
    TokenStorePort,
    supports_ordering,
)
from formguard.domain.token import GuardOptions, TokenPair
from formguard.errors import EntropyUnavailableError

logger = logging.getLogger("formguard.tokens")


class TokenManager:
    """Issues and checks tokens against a shared store.

    The manager holds a reference to the store, never a copy: the store
    outlives the manager and is usually shared by every request of a session.
    """

    def __init__(
        self,
        store: TokenStorePort,
        options: GuardOptions,
        *,
        token_source: Callable[[int], str] = secrets.token_hex,
    ) -> None:
        self._store = store
        self._options = options
        self._token_source = token_source
        self._ordered: OrderedCountableTokenStore | None = None
        if supports_ordering(store):
            self._ordered = cast(OrderedCountableTokenStore, store)
        else:
            logger.debug(
                "csrf_storage_unordered",
                extra={"data": {"store": type(store).__name__}},
            )

    @property
    def store(self) -> TokenStorePort:
        return self._store

    @property
    def options(self) -> GuardOptions:
        return self._options

    def create_token(self) -> str:
        """Return ``strength`` random bytes, hex encoded."""
        try:
            return self._token_source(self._options.strength)
        except (OSError, NotImplementedError) as exc:
            raise EntropyUnavailableError("secure random source unavailable") from exc

    def generate_token(self) -> TokenPair:
        """Create, store and return a fresh token pair."""
        name = f"{self._options.prefix}{uuid4().hex}"
        value = self.create_token()
        self._store[name] = value
        return TokenPair(name=name, value=value)

    def validate_token(self, name: str, value: str) -> bool:
        """Return ``True`` when ``value`` matches the stored token for ``name``.

        The comparison runs in constant time with respect to where the two
        values first differ.
        """
        if name not in self._store:
            return False
        stored = self._store[name]
        if not isinstance(stored, str):
            return False
        return hmac.compare_digest(
            stored.encode("utf-8", "surrogatepass"),
            value.encode("utf-8", "surrogatepass"),
        )

    def remove_token(self, name: str) -> None:
        """Forget ``name``; missing names are ignored."""
        if name in self._store:
            del self._store[name]

    def enforce_storage_limit(self) -> int:
        """Drop the oldest tokens until the store fits the limit."""
        limit = self._options.storage_limit
        store = self._ordered
        if limit <= 0 or store is None:
            return 0

        evicted = 0
        while len(store) > limit:
            oldest = next(iter(store))
            del store[oldest]
            evicted += 1

        if evicted:
            logger.debug(
                "csrf_tokens_evicted",
                extra={"data": {"evicted": evicted, "limit": limit, "remaining": len(store)}},
            )
        return evicted

    def load_last_key_pair(self) -> TokenPair | None:
        """Return the most recently stored pair without issuing a new one."""
        store = self._ordered
        if store is None or len(store) < 1:
            return None

        names = list(store)
        if not names:
            return None
        name = names[-1]
        value = store[name]
        if not isinstance(value, str):
            return None
        return TokenPair(name=name, value=value)


__all__ = ["TokenManager"]
