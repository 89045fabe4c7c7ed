"""HTTP server for ``pocketauth serve``.

Builds the FastAPI app around the v1 OAuth routers: CORS for the registered
client origin, baseline security headers, and a catch for storage failures
that answers ``server_error`` without leaking internals. While serving, a
background task periodically evicts expired records and idle rate-limit
buckets.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)


def sweep_expired() -> tuple[int, int]:
    """Evict expired codes and refresh tokens plus idle rate-limit buckets.

    Returns (records removed, buckets removed).
    """
    from pocketauth.oauth2.server import get_oauth_server
    from pocketauth.security.rate_limiter import auth_limiter, get_token_limiter

    removed = get_oauth_server().cleanup_expired()
    buckets = auth_limiter.cleanup() + get_token_limiter().cleanup()
    if removed or buckets:
        logger.debug("Swept %d expired record(s) and %d idle bucket(s)", removed, buckets)
    return removed, buckets


async def _sweep_loop(interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        try:
            await asyncio.to_thread(sweep_expired)
        except Exception as e:
            logger.error("Cleanup sweep failed: %s", e)


@asynccontextmanager
async def _lifespan(app):
    interval = app.state.cleanup_interval
    task = asyncio.create_task(_sweep_loop(interval)) if interval > 0 else None
    try:
        yield
    finally:
        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass


def create_api_app(settings=None):
    """Build the FastAPI application."""
    from fastapi import FastAPI, Request
    from fastapi.middleware.cors import CORSMiddleware
    from fastapi.responses import JSONResponse, PlainTextResponse

    from pocketauth.api.v1 import mount_v1_routers
    from pocketauth.config import get_settings
    from pocketauth.oauth2.errors import OAuthErrorCode, StoreError

    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title="PocketAuth",
        description="OAuth2 authorization server (authorization code + PKCE).",
        version="1.0.0",
        docs_url="/api/v1/docs",
        redoc_url=None,
        openapi_url="/api/v1/openapi.json",
        lifespan=_lifespan,
    )
    app.state.cleanup_interval = settings.cleanup_interval_seconds

    # --- CORS -----------------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.client_origin],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    # --- Security headers -----------------------------------------------
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        return response

    # --- Storage failures -----------------------------------------------
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.exception("Storage failure on %s", request.url.path)
        return JSONResponse(status_code=500, content={"error": OAuthErrorCode.SERVER_ERROR.value})

    @app.get("/", response_class=PlainTextResponse, include_in_schema=False)
    async def root():
        return "OAuth2 Server is running"

    mount_v1_routers(app)

    return app


def run_api_server(
    host: str = "127.0.0.1",
    port: int = 3000,
    dev: bool = False,
) -> None:
    """Start the server with uvicorn."""
    import uvicorn

    from pocketauth.oauth2.server import get_oauth_server

    # Fail fast on missing client registration before binding the port
    get_oauth_server()

    logger.info("PocketAuth listening on http://%s:%d (docs at /api/v1/docs)", host, port)

    if dev:
        import pathlib

        src_dir = str(pathlib.Path(__file__).resolve().parent.parent)
        uvicorn.run(
            "pocketauth.api.serve:create_api_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            reload_dirs=[src_dir],
            reload_includes=["*.py"],
            log_level="debug",
        )
    else:
        app = create_api_app()
        uvicorn.run(app, host=host, port=port)
