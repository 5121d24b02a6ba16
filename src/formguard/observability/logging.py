"""Logging setup for formguard: one console handler, structured ``data`` extras."""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from logging.config import dictConfig
from typing import Any

from opentelemetry import trace

FORMGUARD_LOGGERS = (
    "formguard.tokens",
    "formguard.guard",
    "formguard.http",
    "formguard.settings",
    "formguard.demo",
)


def _level(env_var: str, default: str) -> str:
    return os.getenv(env_var, default).upper()


def _json_lines_enabled() -> bool:
    # Cloud Run and Kubernetes collectors parse one JSON object per line.
    return bool(os.getenv("K_SERVICE") or os.getenv("KUBERNETES_SERVICE_HOST"))


def _dump(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


class ExtrasFormatter(logging.Formatter):
    """Render ``extra={"data": ...}`` after the message, or as a JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        data = record.__dict__.get("data")
        otel = record.__dict__.get("otel")

        if _json_lines_enabled():
            payload: dict[str, Any] = {
                "message": record.getMessage(),
                "severity": record.levelname,
                "logger": record.name,
                "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            }
            if data:
                payload["data"] = data
            if otel:
                payload["otel"] = otel
            if record.exc_info:
                payload["exception"] = self.formatException(record.exc_info)
            return _dump(payload)

        formatted = super().format(record)
        if data:
            formatted = f"{formatted} | data={_dump(data)}"
        if otel:
            formatted = f"{formatted} | trace_id={otel['trace_id']}"
        return formatted


class OtelContextLogFilter(logging.Filter):
    """Attach the active span's ids as ``record.otel``."""

    def filter(self, record: logging.LogRecord) -> bool:
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            record.__dict__["otel"] = {
                "trace_id": f"{span_context.trace_id:032x}",
                "span_id": f"{span_context.span_id:016x}",
            }
        return True


def build_log_config(
    *,
    root_level_env: str = "LOG_LEVEL",
    root_default: str = "INFO",
    extra_loggers: Mapping[str, dict[str, Any]] | None = None,
) -> dict[str, Any]:
    """Return a dictConfig mapping; ``CSRF_LOG_LEVEL`` tunes the formguard loggers."""
    csrf_level = _level("CSRF_LOG_LEVEL", "INFO")
    loggers: dict[str, dict[str, Any]] = {name: {"level": csrf_level} for name in FORMGUARD_LOGGERS}

    server_level = _level("UVICORN_LOG_LEVEL", "INFO")
    for name, level in (
        ("uvicorn", server_level),
        ("uvicorn.error", server_level),
        ("uvicorn.access", _level("UVICORN_ACCESS_LOG_LEVEL", "WARNING")),
    ):
        loggers[name] = {"level": level, "handlers": ["console"], "propagate": False}

    if extra_loggers:
        loggers.update(extra_loggers)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "()": ExtrasFormatter,
                "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%dT%H:%M:%S",
            }
        },
        "filters": {"otel_context": {"()": OtelContextLogFilter}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "stream": "ext://sys.stdout",
                "filters": ["otel_context"],
            }
        },
        "root": {"level": _level(root_level_env, root_default), "handlers": ["console"]},
        "loggers": loggers,
    }


def configure_logging(
    *,
    root_level_env: str = "LOG_LEVEL",
    root_default: str = "INFO",
    extra_loggers: Mapping[str, dict[str, Any]] | None = None,
) -> None:
    dictConfig(
        build_log_config(
            root_level_env=root_level_env,
            root_default=root_default,
            extra_loggers=extra_loggers,
        )
    )


__all__ = ["ExtrasFormatter", "OtelContextLogFilter", "build_log_config", "configure_logging"]
