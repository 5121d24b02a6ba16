"""Token store adapters: process memory and the Starlette session."""

from __future__ import annotations

from collections.abc import Iterator, MutableMapping
from threading import Lock
from typing import Any


class InMemoryTokenStore(MutableMapping[str, str]):
    """Keeps tokens in memory for the lifetime of the process.

    Each operation is atomic; a request's read-modify-write sequence is not.
    """

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._tokens: dict[str, str] = dict(initial or {})
        self._lock = Lock()

    def __getitem__(self, name: str) -> str:
        with self._lock:
            return self._tokens[name]

    def __setitem__(self, name: str, value: str) -> None:
        with self._lock:
            self._tokens[name] = value

    def __delitem__(self, name: str) -> None:
        with self._lock:
            del self._tokens[name]

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tokens

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            names = list(self._tokens)
        return iter(names)

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)


class SessionTokenStore(MutableMapping[str, str]):
    """View onto ``session[key]`` of a Starlette session mapping.

    Starlette only re-signs the session cookie when a top-level key is
    assigned, so every write stores the bucket back under ``key``.
    """

    def __init__(self, session: MutableMapping[str, Any], key: str) -> None:
        self._session = session
        self._key = key
        self._bucket()

    @property
    def key(self) -> str:
        return self._key

    def _bucket(self) -> dict[str, str]:
        bucket = self._session.get(self._key)
        if not isinstance(bucket, dict):
            bucket = {}
            self._session[self._key] = bucket
        return bucket

    def _save(self, bucket: dict[str, str]) -> None:
        self._session[self._key] = bucket

    def __getitem__(self, name: str) -> str:
        return self._bucket()[name]

    def __setitem__(self, name: str, value: str) -> None:
        bucket = self._bucket()
        bucket[name] = value
        self._save(bucket)

    def __delitem__(self, name: str) -> None:
        bucket = self._bucket()
        del bucket[name]
        self._save(bucket)

    def __contains__(self, name: object) -> bool:
        return name in self._bucket()

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._bucket()))

    def __len__(self) -> int:
        return len(self._bucket())


__all__ = ["InMemoryTokenStore", "SessionTokenStore"]
