"""Cache-aside response store for upstream payloads."""

from __future__ import annotations

import hashlib
import json
import re
from typing import Any, Final

import structlog

from searchgate.core.clock import Clock, system_clock
from searchgate.core.metrics import track_cache_lookup
from searchgate.store.base import NAMESPACE_CACHE, Store

logger = structlog.get_logger(__name__)

# Never part of a key: two deployments with different upstream keys share
# identical responses.
EXCLUDED_PARAMS = frozenset({"api-key", "api_key"})

_WHITESPACE = re.compile(r"\s+")


class _CacheMiss:
    """Type of the ``CACHE_MISS`` sentinel."""

    _instance: _CacheMiss | None = None

    def __new__(cls) -> _CacheMiss:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "CACHE_MISS"

    def __bool__(self) -> bool:
        return False


CACHE_MISS: Final = _CacheMiss()


def normalize_query(query: str) -> str:
    """Trim, collapse inner whitespace and lower-case a free-text query."""
    return _WHITESPACE.sub(" ", query.strip()).lower()


def _normalize_params(params: dict[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    for name, value in params.items():
        if name in EXCLUDED_PARAMS or value is None:
            continue
        if isinstance(value, str):
            value = _WHITESPACE.sub(" ", value.strip())
            if not value:
                continue
            if name in ("q", "query"):
                value = value.lower()
        normalized[name] = value
    return normalized


def make_cache_key(operation: str, params: dict[str, Any]) -> str:
    """Deterministic key for ``(operation, parameters)``.

    Parameters are normalized and serialized as canonical JSON (sorted
    keys, no insignificant whitespace) before hashing with SHA-256, so
    equivalent requests map to the same entry regardless of argument order
    or incidental whitespace.
    """
    canonical = json.dumps(
        {"operation": operation, "params": _normalize_params(params)},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ResponseCache:
    """Upstream payloads with lazy, clock-judged expiry."""

    def __init__(
        self,
        store: Store,
        *,
        default_ttl_seconds: int = 3600,
        clock: Clock = system_clock,
    ) -> None:
        if default_ttl_seconds <= 0:
            raise ValueError("default_ttl_seconds must be positive")
        self.store = store
        self.default_ttl_seconds = default_ttl_seconds
        self.clock = clock

    async def get(self, key: str) -> Any:
        """Return the cached payload, or ``CACHE_MISS``.

        A cached empty list or ``None`` payload is a hit, not a miss.
        """
        record = await self.store.get(NAMESPACE_CACHE, key)
        if record is None:
            track_cache_lookup(False)
            logger.debug("cache_miss", key=key)
            return CACHE_MISS
        track_cache_lookup(True)
        logger.debug("cache_hit", key=key)
        return record.value["payload"]

    async def put(self, key: str, payload: Any, ttl: int | None = None) -> None:
        """Replace any entry under ``key``; expires ``ttl`` seconds from now."""
        ttl = self.default_ttl_seconds if ttl is None else ttl
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        expires_at = self.clock() + ttl
        await self.store.put(NAMESPACE_CACHE, key, {"payload": payload}, expires_at=expires_at)
        logger.debug("cache_stored", key=key, ttl=ttl)

    async def invalidate(self, key: str) -> bool:
        return await self.store.delete(NAMESPACE_CACHE, key)

    async def sweep(self) -> int:
        """Physically remove expired entries. Never needed for correctness."""
        purged = await self.store.purge_expired(NAMESPACE_CACHE)
        logger.info("cache_swept", purged=purged)
        return purged
