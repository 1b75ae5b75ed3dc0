"""Test configuration and fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI
from helpers import (
    TEST_SECRET,
    TEST_UPSTREAM_KEY,
    TEST_UPSTREAM_URL,
    FakeUpstream,
    ManualClock,
    make_settings,
    open_store,
)
from httpx import ASGITransport, AsyncClient

from searchgate.api.main import create_app, install_services
from searchgate.core.config import Settings
from searchgate.gateway.authenticator import TokenAuthenticator
from searchgate.gateway.cache import ResponseCache
from searchgate.gateway.gatekeeper import Gatekeeper
from searchgate.gateway.rate_limiter import RateLimiter
from searchgate.gateway.search import SearchGateway
from searchgate.gateway.upstream import UpstreamClient
from searchgate.store.base import Store
from searchgate.store.memory import MemoryStore


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest_asyncio.fixture(scope="function")
async def memory_store(clock: ManualClock) -> AsyncGenerator[MemoryStore, None]:
    store = MemoryStore(clock)
    yield store
    await store.close()


@pytest_asyncio.fixture(scope="function", params=["memory", "sql", "redis"])
async def store(
    request: pytest.FixtureRequest, clock: ManualClock, tmp_path: Path
) -> AsyncGenerator[Store, None]:
    """Every store backend in turn."""
    opened = await open_store(request.param, clock, tmp_path)
    yield opened
    await opened.close()


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest_asyncio.fixture(scope="function")
async def upstream_client(fake_upstream: FakeUpstream) -> AsyncGenerator[UpstreamClient, None]:
    client = UpstreamClient(
        TEST_UPSTREAM_URL,
        api_key=TEST_UPSTREAM_KEY,
        timeout_seconds=5.0,
        transport=httpx.MockTransport(fake_upstream),
    )
    yield client
    await client.close()


@pytest.fixture
def authenticator(memory_store: MemoryStore, clock: ManualClock) -> TokenAuthenticator:
    return TokenAuthenticator(memory_store, TEST_SECRET, ttl_seconds=86400, clock=clock)


@pytest.fixture
def rate_limiter(memory_store: MemoryStore, clock: ManualClock) -> RateLimiter:
    return RateLimiter(memory_store, limit=5, window_seconds=60, clock=clock)


@pytest.fixture
def response_cache(memory_store: MemoryStore, clock: ManualClock) -> ResponseCache:
    return ResponseCache(memory_store, default_ttl_seconds=3600, clock=clock)


@pytest.fixture
def search_gateway(response_cache: ResponseCache, upstream_client: UpstreamClient) -> SearchGateway:
    return SearchGateway(response_cache, upstream_client)


@pytest.fixture
def gatekeeper(
    authenticator: TokenAuthenticator,
    rate_limiter: RateLimiter,
    search_gateway: SearchGateway,
) -> Gatekeeper:
    return Gatekeeper(authenticator, rate_limiter, search_gateway, require_auth=True)


@pytest.fixture
def app(
    settings: Settings,
    memory_store: MemoryStore,
    upstream_client: UpstreamClient,
    clock: ManualClock,
) -> FastAPI:
    """Application with services installed directly.

    ``ASGITransport`` does not run the lifespan, so the services it would
    create are installed here against the test store and upstream.
    """
    application = create_app(settings)
    install_services(application, memory_store, upstream_client, clock)
    return application


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create test client bound to the app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(scope="function")
async def access_token(app: FastAPI) -> str:
    """Live bearer token for subject 42."""
    issued = await app.state.authenticator.issue(42)
    return issued.token


@pytest.fixture
def auth_headers(access_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}
