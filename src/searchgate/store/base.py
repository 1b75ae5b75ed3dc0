"""Store abstraction shared by the authenticator, rate limiter and cache.

A store is a namespaced key-value substrate whose records carry an optional
expiration timestamp and an opaque ``revision``. Records past their
expiration are logically absent even when physically present; removing
them is an optimization (``purge_expired``), never a correctness
requirement.

Every write stamps a fresh revision. ``compare_and_set`` only succeeds when
the live record still carries the revision the caller read, which is what
makes read-modify-write sequences (rate windows) linearizable without
locks shared between requests.
"""

from __future__ import annotations

import secrets
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from searchgate.core.clock import Clock, system_clock

NAMESPACE_TOKENS = "token"
NAMESPACE_RATE = "rate"
NAMESPACE_CACHE = "cache"


def new_revision() -> str:
    """Random revision tag; never reused, so compare-and-set is ABA-safe."""
    return secrets.token_hex(16)


@dataclass(frozen=True)
class StoreRecord:
    """A live record as returned by ``Store.get``."""

    value: dict[str, Any]
    expires_at: float | None
    revision: str

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and self.expires_at <= now


class Store(ABC):
    """Abstract key-value store with per-record expiration."""

    def __init__(self, clock: Clock = system_clock) -> None:
        self.clock = clock

    async def open(self) -> None:
        """Acquire backend resources (tables, connections)."""

    @abstractmethod
    async def close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def ping(self) -> bool:
        """Return True if the backend is reachable."""

    @abstractmethod
    async def get(self, namespace: str, key: str) -> StoreRecord | None:
        """Return the live record, or None if absent or expired."""

    @abstractmethod
    async def put(
        self,
        namespace: str,
        key: str,
        value: dict[str, Any],
        expires_at: float | None = None,
    ) -> None:
        """Atomically replace any record stored under ``key``."""

    @abstractmethod
    async def delete(self, namespace: str, key: str) -> bool:
        """Delete the record. Returns True if a live record was removed."""

    @abstractmethod
    async def compare_and_set(
        self,
        namespace: str,
        key: str,
        expected_revision: str | None,
        value: dict[str, Any],
        expires_at: float | None = None,
    ) -> bool:
        """Write ``value`` only if the live record's revision matches.

        ``expected_revision=None`` means the key must be absent (or expired).
        Returns False without writing when another writer got there first.
        """

    @abstractmethod
    async def purge_expired(self, namespace: str, prefix: str = "") -> int:
        """Delete expired records whose key starts with ``prefix``."""

    async def __aenter__(self) -> Store:
        await self.open()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
