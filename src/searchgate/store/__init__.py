"""Key-value store backends shared by the gatekeeper components."""

from searchgate.store.base import (
    NAMESPACE_CACHE,
    NAMESPACE_RATE,
    NAMESPACE_TOKENS,
    Store,
    StoreRecord,
)
from searchgate.store.factory import create_store
from searchgate.store.memory import MemoryStore
from searchgate.store.redis import RedisStore
from searchgate.store.sql import SQLStore

__all__ = [
    "NAMESPACE_CACHE",
    "NAMESPACE_RATE",
    "NAMESPACE_TOKENS",
    "MemoryStore",
    "RedisStore",
    "SQLStore",
    "Store",
    "StoreRecord",
    "create_store",
]
