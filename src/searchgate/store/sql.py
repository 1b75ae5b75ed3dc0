"""SQL store backend on SQLAlchemy's async engine.

Every operation runs in its own short transaction. Conditional writes are
single statements (``UPDATE ... WHERE revision = :expected``) or rely on the
``(namespace, key)`` primary key to reject a second concurrent insert, so
the database itself arbitrates between racing writers.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, or_, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from searchgate.core.clock import Clock, system_clock
from searchgate.core.config import Settings
from searchgate.core.database import create_engine
from searchgate.core.exceptions import StoreUnavailableError
from searchgate.core.logging import get_logger
from searchgate.models.base import Base
from searchgate.models.record import GateRecord
from searchgate.store.base import Store, StoreRecord, new_revision

logger = get_logger(__name__)

# Concurrent replacements of one key can collide on the primary key.
PUT_ATTEMPTS = 5


class SQLStore(Store):
    """Store backed by the ``gate_records`` table."""

    def __init__(
        self,
        engine: AsyncEngine,
        clock: Clock = system_clock,
        *,
        owns_engine: bool = True,
    ) -> None:
        super().__init__(clock)
        self.engine = engine
        self._owns_engine = owns_engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = system_clock) -> SQLStore:
        return cls(create_engine(settings), clock)

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session, session.begin():
                yield session
        except IntegrityError:
            raise
        except (SQLAlchemyError, OSError) as exc:
            logger.error("store_backend_error", backend="sql", error=str(exc))
            raise StoreUnavailableError(details={"backend": "sql"}) from exc

    @staticmethod
    def _live_clause(now: float) -> Any:
        return or_(GateRecord.expires_at.is_(None), GateRecord.expires_at > now)

    async def open(self) -> None:
        """Create the table if it does not exist yet."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except (SQLAlchemyError, OSError) as exc:
            logger.error("store_open_failed", backend="sql", error=str(exc))
            raise StoreUnavailableError(details={"backend": "sql"}) from exc

    async def close(self) -> None:
        if self._owns_engine:
            await self.engine.dispose()

    async def ping(self) -> bool:
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception:
            return False

    async def get(self, namespace: str, key: str) -> StoreRecord | None:
        now = self.clock()
        async with self._transaction() as session:
            result = await session.execute(
                select(GateRecord).where(
                    GateRecord.namespace == namespace,
                    GateRecord.key == key,
                )
            )
            row = result.scalar_one_or_none()

        if row is None:
            return None
        record = StoreRecord(json.loads(row.value), row.expires_at, row.revision)
        if record.is_expired(now):
            return None
        return record

    async def put(
        self,
        namespace: str,
        key: str,
        value: dict[str, Any],
        expires_at: float | None = None,
    ) -> None:
        payload = json.dumps(value, separators=(",", ":"))
        for attempt in range(PUT_ATTEMPTS):
            try:
                async with self._transaction() as session:
                    await session.execute(
                        delete(GateRecord).where(
                            GateRecord.namespace == namespace,
                            GateRecord.key == key,
                        )
                    )
                    session.add(
                        GateRecord(
                            namespace=namespace,
                            key=key,
                            value=payload,
                            expires_at=expires_at,
                            revision=new_revision(),
                        )
                    )
                return
            except IntegrityError:
                logger.debug("store_put_conflict", namespace=namespace, attempt=attempt + 1)

        raise StoreUnavailableError(
            "Could not replace record after repeated conflicts",
            details={"backend": "sql", "namespace": namespace},
        )

    async def delete(self, namespace: str, key: str) -> bool:
        now = self.clock()
        async with self._transaction() as session:
            live = await session.execute(
                delete(GateRecord).where(
                    GateRecord.namespace == namespace,
                    GateRecord.key == key,
                    self._live_clause(now),
                )
            )
            # Drop an expired leftover too; it was already logically absent.
            await session.execute(
                delete(GateRecord).where(
                    GateRecord.namespace == namespace,
                    GateRecord.key == key,
                )
            )
        return bool(live.rowcount)

    async def compare_and_set(
        self,
        namespace: str,
        key: str,
        expected_revision: str | None,
        value: dict[str, Any],
        expires_at: float | None = None,
    ) -> bool:
        now = self.clock()
        payload = json.dumps(value, separators=(",", ":"))

        if expected_revision is None:
            try:
                async with self._transaction() as session:
                    await session.execute(
                        delete(GateRecord).where(
                            GateRecord.namespace == namespace,
                            GateRecord.key == key,
                            GateRecord.expires_at.is_not(None),
                            GateRecord.expires_at <= now,
                        )
                    )
                    session.add(
                        GateRecord(
                            namespace=namespace,
                            key=key,
                            value=payload,
                            expires_at=expires_at,
                            revision=new_revision(),
                        )
                    )
            except IntegrityError:
                return False
            return True

        async with self._transaction() as session:
            result = await session.execute(
                update(GateRecord)
                .where(
                    GateRecord.namespace == namespace,
                    GateRecord.key == key,
                    GateRecord.revision == expected_revision,
                    self._live_clause(now),
                )
                .values(value=payload, expires_at=expires_at, revision=new_revision())
            )
        return result.rowcount == 1

    async def purge_expired(self, namespace: str, prefix: str = "") -> int:
        now = self.clock()
        conditions = [
            GateRecord.namespace == namespace,
            GateRecord.expires_at.is_not(None),
            GateRecord.expires_at <= now,
        ]
        if prefix:
            conditions.append(GateRecord.key.startswith(prefix, autoescape=True))

        async with self._transaction() as session:
            result = await session.execute(delete(GateRecord).where(*conditions))
        return result.rowcount or 0
