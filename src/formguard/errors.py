"""Exceptions raised by the CSRF guard.

Only configuration and entropy problems escape the guard; a failed token
check is an expected outcome and is turned into a failure response instead.
"""

from __future__ import annotations


class CsrfError(Exception):
    """Base class for CSRF guard failures."""


class ConfigurationError(CsrfError, ValueError):
    """Raised when the guard is built with unusable settings or no token storage."""


class EntropyUnavailableError(CsrfError, RuntimeError):
    """Raised when the secure random source cannot supply token bytes."""


__all__ = [
    "CsrfError",
    "ConfigurationError",
    "EntropyUnavailableError",
]
