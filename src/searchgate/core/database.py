"""Database engine construction for the SQL store backend."""

from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from searchgate.core.config import Settings


def is_sqlite_url(url: str) -> bool:
    return url.startswith("sqlite")


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine described by ``settings.database_url``.

    SQLite gets a single shared connection for in-memory databases so every
    session sees the same data; server databases get a pre-pinged pool.
    """
    url = settings.database_url
    kwargs: dict[str, Any] = {"echo": settings.debug}

    if is_sqlite_url(url):
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            kwargs["poolclass"] = StaticPool
    else:
        kwargs.update(pool_pre_ping=True, pool_size=5, max_overflow=10)

    return create_async_engine(url, **kwargs)
