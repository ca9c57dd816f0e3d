"""
FastAPI application factory for the terraform mirror.

create_app() builds the upstream client, hash store, mirror service and
download proxy once and keeps them on ``app.state``; the lifespan handler
configures logging on startup and releases them on shutdown.
"""

import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tfmirror.version import __version__
from tfmirror.config import Settings
from tfmirror.logging_config import configure_logging, get_logger
from tfmirror.services.download_proxy import DownloadProxy
from tfmirror.services.provider_mirror_service import ProviderMirrorService
from tfmirror.services.upstream_client import UpstreamClient, build_transport
from tfmirror.storage import init_hash_store
from tfmirror.storage.protocol import HashStore

from .health import router as health_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan handler for startup and shutdown."""
    app_settings: Settings = app.state.settings

    # Startup
    configure_logging(json_logs=app_settings.json_logs, log_level=app_settings.log_level)
    logger.info(
        "Starting terraform mirror",
        version=__version__,
        upstream=app_settings.upstream.url,
        cache_dir=app_settings.cache.dir if app_settings.cache.enabled else None,
    )

    yield

    # Shutdown
    logger.info("Shutting down terraform mirror")
    await app.state.upstream.close()
    if app.state.hash_store is not None:
        await app.state.hash_store.close()


def _init_components(
    app: FastAPI,
    app_settings: Settings,
    transport: httpx.AsyncBaseTransport | None,
    hash_store: HashStore | None,
) -> None:
    upstream = UpstreamClient(
        base_url=app_settings.upstream.url,
        timeout=app_settings.upstream.timeout,
        download_timeout=app_settings.upstream.download_timeout,
        transport=transport or build_transport(app_settings.upstream.socks5_addr),
    )
    if hash_store is None:
        hash_store = init_hash_store(app_settings.cache)

    mirror = ProviderMirrorService(upstream, hash_store)
    proxy = DownloadProxy(
        mirror,
        upstream,
        hash_store,
        spool_dir=app_settings.cache.spool_dir,
        download_timeout=app_settings.upstream.download_timeout,
    )

    app.state.settings = app_settings
    app.state.upstream = upstream
    app.state.hash_store = hash_store
    app.state.hash_cache_enabled = hash_store is not None
    app.state.mirror_service = mirror
    app.state.download_proxy = proxy


def create_app(
    app_settings: Settings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
    hash_store: HashStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    ``transport`` replaces the origin transport (direct or SOCKS5) and
    ``hash_store`` replaces the configured store; both exist for tests.
    """
    app_settings = app_settings or Settings()

    app = FastAPI(
        title="Terraform Mirror",
        description="Terraform provider network mirror with h1 hash caching",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
    )
    _init_components(app, app_settings, transport, hash_store)

    # Request ID middleware
    @app.middleware("http")
    async def add_request_id(request: Request, call_next):  # type: ignore[no-untyped-def]
        """Ensure every request has a request ID for logging correlation."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        structlog.contextvars.unbind_contextvars("request_id")

        return response

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Global exception handler for unhandled errors."""
        logger.error("Unhandled exception", exc_info=exc, path=str(request.url.path))
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    # Health endpoints (no prefix)
    app.include_router(health_router)

    # Provider network mirror
    from tfmirror.api.routers.provider_mirror import router as provider_mirror_router

    app.include_router(provider_mirror_router)

    return app
