"""Redis store backend.

Records are JSON documents under ``{prefix}:{namespace}:{key}``. Logical
expiry is judged against the injected clock; a matching Redis TTL is set as
well so stale keys disappear without a sweep. Compare-and-set uses
optimistic ``WATCH``/``MULTI`` transactions: if another client touches the
key between the read and ``EXEC``, the transaction aborts and the write is
reported as lost.
"""

from __future__ import annotations

import json
import math
import re
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from redis.asyncio import Redis
from redis.exceptions import RedisError, WatchError

from searchgate.core.clock import Clock, system_clock
from searchgate.core.config import Settings
from searchgate.core.exceptions import StoreUnavailableError
from searchgate.core.logging import get_logger
from searchgate.core.redis import create_redis_client
from searchgate.store.base import Store, StoreRecord, new_revision

logger = get_logger(__name__)

_GLOB_SPECIAL = re.compile(r"([*?\[\]\\])")


class RedisStore(Store):
    """Store backed by plain Redis string keys."""

    def __init__(
        self,
        redis_client: Redis,
        clock: Clock = system_clock,
        *,
        key_prefix: str = "searchgate",
        owns_client: bool = True,
    ) -> None:
        super().__init__(clock)
        self.redis = redis_client
        self.key_prefix = key_prefix
        self._owns_client = owns_client

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = system_clock) -> RedisStore:
        return cls(create_redis_client(settings), clock, key_prefix=settings.redis_key_prefix)

    def _redis_key(self, namespace: str, key: str) -> str:
        return f"{self.key_prefix}:{namespace}:{key}"

    @staticmethod
    def _encode(value: dict[str, Any], expires_at: float | None, revision: str) -> str:
        return json.dumps({"v": value, "e": expires_at, "r": revision}, separators=(",", ":"))

    @staticmethod
    def _decode(raw: str | bytes | None) -> StoreRecord | None:
        if raw is None:
            return None
        doc = json.loads(raw)
        return StoreRecord(doc["v"], doc["e"], doc["r"])

    def _ttl(self, expires_at: float | None) -> int | None:
        """Physical Redis TTL in whole seconds, None for no expiry."""
        if expires_at is None:
            return None
        return math.ceil(expires_at - self.clock())

    @asynccontextmanager
    async def _backend_errors(self) -> AsyncIterator[None]:
        try:
            yield
        except WatchError:
            raise
        except (RedisError, OSError) as exc:
            logger.error("store_backend_error", backend="redis", error=str(exc))
            raise StoreUnavailableError(details={"backend": "redis"}) from exc

    async def close(self) -> None:
        if self._owns_client:
            await self.redis.aclose()

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except Exception:
            return False

    async def get(self, namespace: str, key: str) -> StoreRecord | None:
        async with self._backend_errors():
            raw = await self.redis.get(self._redis_key(namespace, key))
        record = self._decode(raw)
        if record is None or record.is_expired(self.clock()):
            return None
        return record

    async def put(
        self,
        namespace: str,
        key: str,
        value: dict[str, Any],
        expires_at: float | None = None,
    ) -> None:
        redis_key = self._redis_key(namespace, key)
        ttl = self._ttl(expires_at)
        async with self._backend_errors():
            if ttl is not None and ttl <= 0:
                await self.redis.delete(redis_key)
                return
            await self.redis.set(redis_key, self._encode(value, expires_at, new_revision()), ex=ttl)

    async def delete(self, namespace: str, key: str) -> bool:
        async with self._backend_errors():
            raw = await self.redis.getdel(self._redis_key(namespace, key))
        record = self._decode(raw)
        return record is not None and not record.is_expired(self.clock())

    async def compare_and_set(
        self,
        namespace: str,
        key: str,
        expected_revision: str | None,
        value: dict[str, Any],
        expires_at: float | None = None,
    ) -> bool:
        redis_key = self._redis_key(namespace, key)
        async with self._backend_errors():
            async with self.redis.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(redis_key)
                    current = self._decode(await pipe.get(redis_key))
                    if current is not None and current.is_expired(self.clock()):
                        current = None
                    current_revision = current.revision if current is not None else None
                    if current_revision != expected_revision:
                        await pipe.unwatch()
                        return False

                    pipe.multi()
                    ttl = self._ttl(expires_at)
                    if ttl is not None and ttl <= 0:
                        pipe.delete(redis_key)
                    else:
                        pipe.set(
                            redis_key,
                            self._encode(value, expires_at, new_revision()),
                            ex=ttl,
                        )
                    await pipe.execute()
                    return True
                except WatchError:
                    return False

    async def purge_expired(self, namespace: str, prefix: str = "") -> int:
        pattern = self._redis_key(namespace, _GLOB_SPECIAL.sub(r"\\\1", prefix)) + "*"
        now = self.clock()
        purged = 0
        async with self._backend_errors():
            async for redis_key in self.redis.scan_iter(match=pattern):
                raw = await self.redis.get(redis_key)
                record = self._decode(raw)
                if record is None or not record.is_expired(now):
                    continue
                if await self._delete_expired(redis_key, record.revision):
                    purged += 1
        return purged

    async def _delete_expired(self, redis_key: str, revision: str) -> bool:
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(redis_key)
                current = self._decode(await pipe.get(redis_key))
                if current is None or current.revision != revision:
                    await pipe.unwatch()
                    return False
                pipe.multi()
                pipe.delete(redis_key)
                await pipe.execute()
                return True
            except WatchError:
                return False
