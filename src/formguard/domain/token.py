"""Token pair and guard option primitives."""

from __future__ import annotations

from dataclasses import dataclass

from formguard.errors import ConfigurationError

MIN_STRENGTH = 16
DEFAULT_PREFIX = "csrf"
DEFAULT_STORAGE_LIMIT = 200


@dataclass(frozen=True, slots=True)
class GuardOptions:
    """Per-guard settings, validated once at construction."""

    prefix: str = DEFAULT_PREFIX
    storage_limit: int = DEFAULT_STORAGE_LIMIT
    strength: int = MIN_STRENGTH
    persistent_token_mode: bool = False

    def __post_init__(self) -> None:
        prefix = self.prefix.rstrip("_")
        if not prefix:
            raise ConfigurationError("CSRF prefix must not be empty")
        object.__setattr__(self, "prefix", prefix)
        if self.strength < MIN_STRENGTH:
            raise ConfigurationError(
                f"CSRF middleware instantiation failed. Minimum strength is {MIN_STRENGTH}."
            )
        if self.storage_limit < 0:
            raise ConfigurationError("storage_limit must be non-negative (0 disables eviction)")

    @property
    def name_key(self) -> str:
        return f"{self.prefix}_name"

    @property
    def value_key(self) -> str:
        return f"{self.prefix}_value"


@dataclass(frozen=True, slots=True)
class TokenPair:
    """One issued anti-forgery credential."""

    name: str
    value: str

    def as_dict(self, options: GuardOptions) -> dict[str, str]:
        """Return the pair keyed by the request attribute / form field names."""
        return {options.name_key: self.name, options.value_key: self.value}


__all__ = [
    "DEFAULT_PREFIX",
    "DEFAULT_STORAGE_LIMIT",
    "MIN_STRENGTH",
    "GuardOptions",
    "TokenPair",
]
