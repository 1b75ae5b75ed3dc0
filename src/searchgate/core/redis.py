"""Redis connection management for the Redis store backend."""

import redis.asyncio as redis
from redis.asyncio import Redis

from searchgate.core.config import Settings


def create_redis_client(settings: Settings) -> Redis:
    """Create a Redis client from settings.

    The caller owns the client and must close it on shutdown.
    """
    return redis.from_url(  # type: ignore[no-untyped-call]
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
