from __future__ import annotations

import hmac
import re

import pytest

from formguard.application.token_manager import TokenManager
from formguard.domain.token import GuardOptions, TokenPair
from formguard.errors import EntropyUnavailableError
from formguard.infrastructure.state.token_store import InMemoryTokenStore
from tests.fixtures.fakes import (
    FakeCountOnlyStore,
    FakeIndexOnlyStore,
    counting_token_source,
    failing_token_source,
)


def make_manager(
    store: object | None = None,
    **options: object,
) -> TokenManager:
    return TokenManager(
        store if store is not None else InMemoryTokenStore(),  # type: ignore[arg-type]
        GuardOptions(**options),  # type: ignore[arg-type]
    )


def test_create_token_is_hex_of_requested_strength() -> None:
    manager = make_manager(strength=32)

    token = manager.create_token()

    assert re.fullmatch(r"[0-9a-f]{64}", token)


def test_create_token_passes_strength_to_source() -> None:
    requested, source = counting_token_source()
    manager = TokenManager(InMemoryTokenStore(), GuardOptions(strength=24), token_source=source)

    manager.create_token()

    assert requested == [24]


def test_entropy_failure_is_raised_not_downgraded() -> None:
    store = InMemoryTokenStore()
    manager = TokenManager(store, GuardOptions(), token_source=failing_token_source)

    with pytest.raises(EntropyUnavailableError) as excinfo:
        manager.generate_token()

    assert isinstance(excinfo.value.__cause__, OSError)
    assert len(store) == 0


def test_generate_token_stores_pair_under_prefixed_unique_name() -> None:
    store = InMemoryTokenStore()
    manager = make_manager(store, prefix="form")

    first = manager.generate_token()
    second = manager.generate_token()

    assert first.name.startswith("form")
    assert first.name != second.name
    assert store[first.name] == first.value
    assert store[second.name] == second.value


def test_validate_token_accepts_matching_pair() -> None:
    manager = make_manager()
    pair = manager.generate_token()

    assert manager.validate_token(pair.name, pair.value) is True


def test_validate_token_rejects_tampered_value_without_mutating_store() -> None:
    store = InMemoryTokenStore()
    manager = make_manager(store)
    pair = manager.generate_token()
    tampered = pair.value[:-1] + ("0" if pair.value[-1] != "0" else "1")

    assert manager.validate_token(pair.name, tampered) is False
    assert store[pair.name] == pair.value


def test_validate_token_rejects_unknown_name_and_non_ascii_value() -> None:
    manager = make_manager()
    pair = manager.generate_token()

    assert manager.validate_token("csrfmissing", pair.value) is False
    assert manager.validate_token(pair.name, "ünïcode") is False


def test_validate_token_rejects_non_string_stored_value() -> None:
    store: dict[str, object] = {"csrfodd": 1234}
    manager = make_manager(store)

    assert manager.validate_token("csrfodd", "1234") is False


def test_validate_token_uses_constant_time_comparison(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[bytes, bytes]] = []
    real_compare = hmac.compare_digest

    def spy(a: bytes, b: bytes) -> bool:
        calls.append((a, b))
        return real_compare(a, b)

    monkeypatch.setattr(hmac, "compare_digest", spy)
    manager = make_manager()
    pair = manager.generate_token()

    assert manager.validate_token(pair.name, pair.value)
    assert calls == [(pair.value.encode(), pair.value.encode())]


def test_validate_token_treats_lone_surrogate_as_mismatch() -> None:
    manager = make_manager()
    pair = manager.generate_token()

    assert manager.validate_token(pair.name, "\ud800") is False
    assert manager.validate_token(pair.name, pair.value) is True


def test_remove_token_is_idempotent() -> None:
    store = InMemoryTokenStore()
    manager = make_manager(store)
    pair = manager.generate_token()

    manager.remove_token(pair.name)
    manager.remove_token(pair.name)

    assert pair.name not in store


def test_enforce_storage_limit_evicts_oldest_first() -> None:
    store = InMemoryTokenStore()
    manager = make_manager(store, storage_limit=2)
    pairs = [manager.generate_token() for _ in range(5)]

    evicted = manager.enforce_storage_limit()

    assert evicted == 3
    assert list(store) == [pairs[3].name, pairs[4].name]


def test_enforce_storage_limit_zero_disables_eviction() -> None:
    store = InMemoryTokenStore()
    manager = make_manager(store, storage_limit=0)
    for _ in range(5):
        manager.generate_token()

    assert manager.enforce_storage_limit() == 0
    assert len(store) == 5


def test_enforce_storage_limit_works_on_plain_dict() -> None:
    store: dict[str, str] = {}
    manager = make_manager(store, storage_limit=1)
    manager.generate_token()
    last = manager.generate_token()

    manager.enforce_storage_limit()

    assert store == {last.name: last.value}


@pytest.mark.parametrize("store_cls", [FakeIndexOnlyStore, FakeCountOnlyStore])
def test_storage_without_ordering_skips_eviction_and_reuse(store_cls: type[FakeIndexOnlyStore]) -> None:
    store = store_cls()
    manager = make_manager(store, storage_limit=1)
    pair = manager.generate_token()
    manager.generate_token()

    assert manager.enforce_storage_limit() == 0
    assert len(store.tokens) == 2
    assert manager.load_last_key_pair() is None
    assert manager.validate_token(pair.name, pair.value)


def test_load_last_key_pair_returns_newest_entry() -> None:
    store = InMemoryTokenStore()
    manager = make_manager(store)
    manager.generate_token()
    newest = manager.generate_token()

    assert manager.load_last_key_pair() == newest
    assert len(store) == 2


def test_load_last_key_pair_on_empty_store() -> None:
    assert make_manager().load_last_key_pair() is None


def test_load_last_key_pair_reads_existing_entries() -> None:
    store = InMemoryTokenStore({"csrfa": "1", "csrfb": "2"})
    manager = make_manager(store)

    assert manager.load_last_key_pair() == TokenPair(name="csrfb", value="2")
