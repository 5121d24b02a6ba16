"""Port describing where issued CSRF tokens are kept.

A store is anything that behaves like a mapping of token name to token value.
Counting and ordered iteration are separate capabilities: a store lacking
either still works for validation, but eviction and persistent-mode reuse are
skipped for it.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol, runtime_checkable


@runtime_checkable
class TokenStorePort(Protocol):
    """Indexable token storage."""

    def __getitem__(self, name: str) -> str:
        """Return the value stored for ``name``."""

    def __setitem__(self, name: str, value: str) -> None:
        """Insert or overwrite ``name``; first insertion fixes its position."""

    def __delitem__(self, name: str) -> None:
        """Remove ``name``."""

    def __contains__(self, name: object) -> bool:
        """Return ``True`` when ``name`` is stored."""


@runtime_checkable
class CountableTokenStore(Protocol):
    """Storage able to report how many tokens it holds."""

    def __len__(self) -> int:
        """Return the number of stored tokens."""


@runtime_checkable
class OrderedTokenStore(Protocol):
    """Storage iterable over token names, oldest insertion first."""

    def __iter__(self) -> Iterator[str]:
        """Yield stored names in insertion order."""


class OrderedCountableTokenStore(TokenStorePort, CountableTokenStore, OrderedTokenStore, Protocol):
    """Storage offering every capability; eviction and reuse need this."""


def is_token_store(candidate: object) -> bool:
    """Return ``True`` when ``candidate`` can hold tokens at all."""
    return isinstance(candidate, TokenStorePort)


def supports_ordering(store: object) -> bool:
    """Return ``True`` when ``store`` can be counted and walked oldest-first."""
    return isinstance(store, CountableTokenStore) and isinstance(store, OrderedTokenStore)


__all__ = [
    "CountableTokenStore",
    "OrderedCountableTokenStore",
    "OrderedTokenStore",
    "TokenStorePort",
    "is_token_store",
    "supports_ordering",
]
