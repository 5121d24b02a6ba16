"""Small FastAPI app showing the CSRF middleware behind a cookie session."""

from __future__ import annotations

import argparse
import logging
import os
import secrets
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.sessions import SessionMiddleware

from formguard.application.failure import FailureHandler
from formguard.application.ports.token_store import TokenStorePort
from formguard.config.guard import GuardSettings
from formguard.domain.token import GuardOptions
from formguard.infrastructure.http.middleware import CsrfMiddleware, get_token_pair
from formguard.observability.logging import configure_logging

logger = logging.getLogger("formguard.demo")


def _pair_payload(request: Request, options: GuardOptions) -> dict[str, str | None]:
    pair = get_token_pair(request, options.prefix)
    if pair is None:
        return {options.name_key: None, options.value_key: None}
    return dict(pair.as_dict(options))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    del app
    logger.info("formguard demo starting up")
    yield
    logger.info("formguard demo shutting down")


def create_app(
    settings: GuardSettings | None = None,
    *,
    session_secret: str | None = None,
    storage: TokenStorePort | None = None,
    failure_handler: FailureHandler | None = None,
) -> FastAPI:
    settings = settings or GuardSettings.load()
    options = settings.to_options()
    secret = session_secret or os.getenv("FORMGUARD_SESSION_SECRET") or secrets.token_hex(32)

    app = FastAPI(title="formguard demo", version="0.1.0", lifespan=lifespan)
    # Middleware added last runs first: the session must exist before the guard runs.
    app.add_middleware(
        CsrfMiddleware,
        options=options,
        storage=storage,
        failure_handler=failure_handler,
    )
    app.add_middleware(SessionMiddleware, secret_key=secret, session_cookie="session")

    @app.get("/healthz", tags=["health"], description="Demo health check.")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/form", description="Return the token pair a form should submit.")
    async def form(request: Request) -> dict[str, str | None]:
        return _pair_payload(request, options)

    @app.post("/submit", description="Accept a form protected by the CSRF guard.")
    async def submit(request: Request) -> dict[str, object]:
        submitted = await request.form()
        fields = {
            key: value
            for key, value in submitted.items()
            if key not in (options.name_key, options.value_key) and isinstance(value, str)
        }
        return {"ok": True, "fields": fields, "next": _pair_payload(request, options)}

    return app


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="formguard CSRF demo app.")
    parser.add_argument("--serve", action="store_true", help="Run the FastAPI app with uvicorn.")
    parser.add_argument(
        "--host",
        default=os.getenv("FORMGUARD_HOST", "127.0.0.1"),
        help="Host interface when serving the app.",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.getenv("FORMGUARD_PORT", "8000")),
        help="Port when serving the app.",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.serve:
        import uvicorn

        configure_logging()
        logger.info("starting uvicorn on %s:%s", args.host, args.port)
        uvicorn.run(create_app(), host=args.host, port=args.port, log_config=None)
    else:
        parser.print_help()


if __name__ == "__main__":  # pragma: no cover
    main()
