"""In-process store backend.

Suitable for single-process deployments and for exercising components in
isolation. All operations run under one lock and never await inside the
critical section, so each call is atomic for both threads and tasks.
"""

from __future__ import annotations

import copy
import threading
from typing import Any

from searchgate.core.clock import Clock, system_clock
from searchgate.store.base import Store, StoreRecord, new_revision


class MemoryStore(Store):
    """Dict-backed store keyed by ``(namespace, key)``."""

    def __init__(self, clock: Clock = system_clock) -> None:
        super().__init__(clock)
        self._records: dict[tuple[str, str], StoreRecord] = {}
        self._lock = threading.Lock()

    async def close(self) -> None:
        with self._lock:
            self._records.clear()

    async def ping(self) -> bool:
        return True

    def _live(self, namespace: str, key: str, now: float) -> StoreRecord | None:
        record = self._records.get((namespace, key))
        if record is None or record.is_expired(now):
            return None
        return record

    async def get(self, namespace: str, key: str) -> StoreRecord | None:
        with self._lock:
            record = self._live(namespace, key, self.clock())
            if record is None:
                return None
            return StoreRecord(copy.deepcopy(record.value), record.expires_at, record.revision)

    async def put(
        self,
        namespace: str,
        key: str,
        value: dict[str, Any],
        expires_at: float | None = None,
    ) -> None:
        with self._lock:
            self._records[(namespace, key)] = StoreRecord(
                copy.deepcopy(value), expires_at, new_revision()
            )

    async def delete(self, namespace: str, key: str) -> bool:
        with self._lock:
            live = self._live(namespace, key, self.clock())
            self._records.pop((namespace, key), None)
            return live is not None

    async def compare_and_set(
        self,
        namespace: str,
        key: str,
        expected_revision: str | None,
        value: dict[str, Any],
        expires_at: float | None = None,
    ) -> bool:
        with self._lock:
            live = self._live(namespace, key, self.clock())
            current = live.revision if live is not None else None
            if current != expected_revision:
                return False
            self._records[(namespace, key)] = StoreRecord(
                copy.deepcopy(value), expires_at, new_revision()
            )
            return True

    async def purge_expired(self, namespace: str, prefix: str = "") -> int:
        now = self.clock()
        with self._lock:
            stale = [
                composite
                for composite, record in self._records.items()
                if composite[0] == namespace
                and composite[1].startswith(prefix)
                and record.is_expired(now)
            ]
            for composite in stale:
                del self._records[composite]
        return len(stale)

    def __len__(self) -> int:
        return len(self._records)
