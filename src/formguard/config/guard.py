"""CSRF guard configuration resolved from the environment."""

from __future__ import annotations

import logging

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from formguard.domain.token import (
    DEFAULT_PREFIX,
    DEFAULT_STORAGE_LIMIT,
    MIN_STRENGTH,
    GuardOptions,
)


class GuardSettings(BaseSettings):
    """Guard options read from ``CSRF_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="",
        extra="ignore",
        case_sensitive=False,
        frozen=True,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    prefix: str = Field(default=DEFAULT_PREFIX, alias="CSRF_PREFIX")
    storage_limit: int = Field(
        default=DEFAULT_STORAGE_LIMIT,
        alias="CSRF_STORAGE_LIMIT",
        description="Maximum number of live tokens per store; 0 disables eviction.",
    )
    strength: int = Field(
        default=MIN_STRENGTH,
        alias="CSRF_STRENGTH",
        description="Random bytes per token value.",
    )
    persistent_token_mode: bool = Field(default=False, alias="CSRF_PERSISTENT_TOKEN_MODE")

    def to_options(self) -> GuardOptions:
        """Return validated guard options; raises ``ConfigurationError``."""
        return GuardOptions(
            prefix=self.prefix,
            storage_limit=self.storage_limit,
            strength=self.strength,
            persistent_token_mode=self.persistent_token_mode,
        )

    @classmethod
    def load(cls) -> GuardSettings:
        instance = cls()
        logger = logging.getLogger("formguard.settings")
        logger.info("csrf guard settings loaded: %r", instance)
        return instance


__all__ = ["GuardSettings"]
