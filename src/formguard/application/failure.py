"""Responses produced when a CSRF check fails."""

from __future__ import annotations

from typing import Protocol

from starlette.middleware.base import RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

FAILURE_BODY = "Failed CSRF check!"
FAILURE_STATUS = 400


class FailureHandler(Protocol):
    """Builds the response for a request that failed the CSRF check.

    ``request`` already carries the freshly issued token pair in its state.
    A handler may forward to ``call_next`` itself; the guard never does.
    """

    async def handle(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Return the response sent back to the client."""


class DefaultFailureHandler:
    """Plain-text 400 response."""

    async def handle(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        del request, call_next
        return Response(
            content=FAILURE_BODY,
            status_code=FAILURE_STATUS,
            headers={"Content-Type": "text/plain"},
        )


__all__ = ["DefaultFailureHandler", "FAILURE_BODY", "FAILURE_STATUS", "FailureHandler"]
