"""Store construction from settings."""

from searchgate.core.clock import Clock, system_clock
from searchgate.core.config import Settings
from searchgate.core.logging import get_logger
from searchgate.store.base import Store
from searchgate.store.memory import MemoryStore
from searchgate.store.redis import RedisStore
from searchgate.store.sql import SQLStore

logger = get_logger(__name__)


def create_store(settings: Settings, clock: Clock = system_clock) -> Store:
    """Build the backend named by ``settings.store_backend``.

    The returned store is not opened yet; callers own its lifecycle.
    """
    backend = settings.store_backend
    if backend == "sql":
        store: Store = SQLStore.from_settings(settings, clock)
    elif backend == "redis":
        store = RedisStore.from_settings(settings, clock)
    elif backend == "memory":
        store = MemoryStore(clock)
    else:
        raise ValueError(f"Unsupported store backend: {backend}")

    logger.info("store_created", backend=backend)
    return store
