"""Shared test helpers: manual clock, fake upstream, settings and stores."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import fakeredis
import httpx
from sqlalchemy.ext.asyncio import create_async_engine

from searchgate.core.config import Settings
from searchgate.store.base import Store
from searchgate.store.memory import MemoryStore
from searchgate.store.redis import RedisStore
from searchgate.store.sql import SQLStore

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
TEST_INTERNAL_KEY = "internal-test-key"
TEST_UPSTREAM_URL = "https://upstream.test/svc/search/v2/articlesearch.json"
TEST_UPSTREAM_KEY = "test-upstream-key"
START_TIME = 1_700_000_000.0

SEARCH_PAYLOAD: dict[str, Any] = {
    "status": "OK",
    "response": {
        "docs": [
            {
                "web_url": "https://www.nytimes.com/2024/01/01/technology/ai.html",
                "headline": {"main": "AI everywhere"},
            },
            {
                "web_url": "https://www.nytimes.com/2024/01/02/technology/chips.html",
                "headline": {"main": "Chip shortage"},
            },
        ],
        "meta": {"hits": 2, "offset": 0},
    },
}


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = START_TIME) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """``httpx.MockTransport`` handler that records requests.

    Set ``payload``/``status_code`` for the next replies, ``body`` to send
    raw text, or ``error`` to an ``httpx.TransportError`` subclass to fail
    the transport.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.payload: Any = SEARCH_PAYLOAD
        self.status_code = 200
        self.body: str | None = None
        self.error: type[httpx.TransportError] | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error("upstream failure", request=request)
        content = self.body if self.body is not None else json.dumps(self.payload)
        return httpx.Response(self.status_code, text=content)

    @property
    def calls(self) -> int:
        return len(self.requests)

    @property
    def last_params(self) -> httpx.QueryParams:
        return self.requests[-1].url.params


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "store_backend": "memory",
        "jwt_secret_key": TEST_SECRET,
        "internal_api_key": TEST_INTERNAL_KEY,
        "rate_limit_max_requests": 5,
        "rate_limit_window_seconds": 60,
        "cache_ttl_seconds": 3600,
        "upstream_base_url": TEST_UPSTREAM_URL,
        "upstream_api_key": TEST_UPSTREAM_KEY,
        "upstream_timeout_seconds": 5.0,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


async def open_store(backend: str, clock: ManualClock, tmp_path: Path) -> Store:
    """Open a fresh store of the given backend."""
    store: Store
    if backend == "memory":
        store = MemoryStore(clock)
    elif backend == "sql":
        # A file database so concurrent transactions get separate connections
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gate.db'}")
        store = SQLStore(engine, clock)
    elif backend == "redis":
        store = RedisStore(fakeredis.FakeAsyncRedis(decode_responses=True), clock)
    else:
        raise ValueError(backend)
    await store.open()
    return store
