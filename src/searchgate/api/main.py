"""FastAPI application factory and main entry point."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from searchgate import __version__
from searchgate.api.middleware.exception_handler import setup_exception_handlers
from searchgate.api.middleware.logging import LoggingMiddleware
from searchgate.api.middleware.metrics import MetricsMiddleware
from searchgate.api.routes import articles_router, auth_router, health_router
from searchgate.core.clock import Clock, system_clock
from searchgate.core.config import Settings, get_settings
from searchgate.core.logging import configure_logging, get_logger
from searchgate.gateway.authenticator import TokenAuthenticator
from searchgate.gateway.cache import ResponseCache
from searchgate.gateway.gatekeeper import Gatekeeper
from searchgate.gateway.rate_limiter import RateLimiter
from searchgate.gateway.search import SearchGateway
from searchgate.gateway.upstream import UpstreamClient
from searchgate.store.base import Store
from searchgate.store.factory import create_store

settings = get_settings()

# Configure structured logging
configure_logging(
    json_logs=settings.is_production,
    log_level="DEBUG" if settings.debug else "INFO",
)

logger = get_logger(__name__)


def install_services(
    app: FastAPI,
    store: Store,
    upstream: UpstreamClient,
    clock: Clock = system_clock,
) -> None:
    """Wire the gatekeeper components onto ``app.state``.

    All components share ``store`` and ``clock``.
    """
    app_settings: Settings = app.state.settings
    authenticator = TokenAuthenticator.from_settings(store, app_settings, clock)
    rate_limiter = RateLimiter.from_settings(store, app_settings, clock)
    cache = ResponseCache(store, default_ttl_seconds=app_settings.cache_ttl_seconds, clock=clock)

    app.state.store = store
    app.state.upstream = upstream
    app.state.authenticator = authenticator
    app.state.rate_limiter = rate_limiter
    app.state.cache = cache
    app.state.gatekeeper = Gatekeeper(
        authenticator,
        rate_limiter,
        SearchGateway(cache, upstream),
        require_auth=app_settings.require_auth,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the store and upstream client for the lifetime of the process."""
    app_settings: Settings = app.state.settings
    store = create_store(app_settings)
    await store.open()
    upstream = UpstreamClient.from_settings(app_settings)
    install_services(app, store, upstream)

    logger.info(
        "application_startup",
        app_name=app_settings.app_name,
        env=app_settings.app_env,
        store_backend=app_settings.store_backend,
    )
    try:
        yield
    finally:
        logger.info("application_shutdown")
        await upstream.close()
        await store.close()


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = app_settings or settings
    app = FastAPI(
        title=app_settings.app_name,
        version=__version__,
        description="Authenticated, rate-limited and cached gateway to article search",
        docs_url="/docs" if not app_settings.is_production else None,
        redoc_url="/redoc" if not app_settings.is_production else None,
        lifespan=lifespan,
    )
    app.state.settings = app_settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "Retry-After",
            "X-Cache",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "X-Correlation-ID",
        ],
    )
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(LoggingMiddleware, trust_proxy_headers=app_settings.trust_proxy_headers)

    setup_exception_handlers(app)

    app.include_router(health_router, tags=["Health"])
    app.include_router(
        auth_router,
        prefix=f"{app_settings.api_v1_prefix}/auth",
        tags=["Authentication"],
    )
    app.include_router(
        articles_router,
        prefix=f"{app_settings.api_v1_prefix}/articles",
        tags=["Articles"],
    )

    return app


app = create_app()
