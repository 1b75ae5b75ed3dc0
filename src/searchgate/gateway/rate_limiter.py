"""Fixed-window rate limiting on top of the shared store.

Each identity owns one ``rate`` record holding ``request_count`` and
``window_start``. A request is admitted while the count is below the limit;
once ``window_duration`` has passed since ``window_start`` the count starts
over at 1.

Fixed windows keep O(1) state per identity, at the cost of burst tolerance:
a caller can spend a full budget at the end of one window and another at
the start of the next, i.e. up to ``2 * limit`` requests in a short span
around the boundary. A sliding log would close that gap but needs one
entry per request.

The read-modify-write on the record is made atomic with
``Store.compare_and_set``: the limiter reads the record and its revision,
computes the next state, and only writes if nobody else wrote in between.
On conflict it re-reads and tries again, so concurrent requests from the
same identity can never both count as the first one.
"""

from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from typing import Any

import structlog

from searchgate.core.clock import Clock, system_clock
from searchgate.core.config import Settings
from searchgate.core.exceptions import StoreContentionError
from searchgate.core.metrics import track_rate_limit_decision
from searchgate.store.base import NAMESPACE_RATE, Store, StoreRecord

logger = structlog.get_logger(__name__)

ANONYMOUS = "anonymous"

# Upper bound on compare-and-set rounds for one admit call.
MAX_CAS_ATTEMPTS = 16


@dataclass(frozen=True)
class RateLimitIdentity:
    """Throttled caller: client address plus the bearer token, if any.

    Anonymous and authenticated traffic from one address are separate
    identities. The raw token never leaves this object; only a digest goes
    into the store key.
    """

    client_ip: str
    token: str | None = None

    @property
    def key(self) -> str:
        if not self.token:
            return f"{self.client_ip}|{ANONYMOUS}"
        digest = hashlib.sha256(self.token.encode("utf-8")).hexdigest()[:32]
        return f"{self.client_ip}|{digest}"

    def __repr__(self) -> str:
        return f"RateLimitIdentity(client_ip={self.client_ip!r}, authenticated={bool(self.token)})"


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of ``RateLimiter.admit``."""

    allowed: bool
    limit: int
    remaining: int
    reset_in_seconds: int
    retry_after_seconds: int | None = None


class RateLimiter:
    """Fixed-window request counter per identity."""

    def __init__(
        self,
        store: Store,
        *,
        limit: int,
        window_seconds: int,
        clock: Clock = system_clock,
        prune_interval_seconds: float = 60,
    ) -> None:
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock
        self.prune_interval_seconds = prune_interval_seconds
        self._last_prune_at: float | None = None

    @classmethod
    def from_settings(
        cls, store: Store, settings: Settings, clock: Clock = system_clock
    ) -> RateLimiter:
        return cls(
            store,
            limit=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
            clock=clock,
            prune_interval_seconds=settings.rate_limit_prune_interval_seconds,
        )

    def _window_state(self, count: int, window_start: float, now: float) -> dict[str, Any]:
        return {
            "request_count": count,
            "window_start": window_start,
            "last_activity": now,
            "window_limit": self.limit,
            "window_duration": self.window_seconds,
        }

    def _seconds_left(self, window_start: float, now: float) -> int:
        return max(1, math.ceil(self.window_seconds - (now - window_start)))

    async def _maybe_prune(self, now: float) -> None:
        """Drop windows idle for longer than the window duration.

        Records expire at ``last_activity + window_duration``, so only idle
        identities are affected. Runs at most once per prune interval.
        """
        if (
            self._last_prune_at is not None
            and now - self._last_prune_at < self.prune_interval_seconds
        ):
            return
        self._last_prune_at = now
        pruned = await self.store.purge_expired(NAMESPACE_RATE)
        if pruned:
            logger.debug("rate_windows_pruned", count=pruned)

    def _next_state(
        self, record: StoreRecord | None, now: float
    ) -> tuple[dict[str, Any] | None, RateLimitDecision]:
        """Compute the record to write and the decision it implies.

        Returns ``(None, decision)`` when the request is rejected; rejected
        requests write nothing.
        """
        if record is None:
            count, window_start = 1, now
        else:
            window_start = float(record.value["window_start"])
            count = int(record.value["request_count"])
            if now - window_start >= self.window_seconds:
                count, window_start = 1, now
            elif count >= self.limit:
                retry_after = self._seconds_left(window_start, now)
                return None, RateLimitDecision(
                    allowed=False,
                    limit=self.limit,
                    remaining=0,
                    reset_in_seconds=retry_after,
                    retry_after_seconds=retry_after,
                )
            else:
                count += 1

        decision = RateLimitDecision(
            allowed=True,
            limit=self.limit,
            remaining=max(self.limit - count, 0),
            reset_in_seconds=self._seconds_left(window_start, now),
        )
        return self._window_state(count, window_start, now), decision

    async def admit(self, identity: RateLimitIdentity) -> RateLimitDecision:
        """Charge one request to ``identity`` and report whether it may proceed."""
        await self._maybe_prune(self.clock())

        key = identity.key
        for attempt in range(1, MAX_CAS_ATTEMPTS + 1):
            record = await self.store.get(NAMESPACE_RATE, key)
            now = self.clock()
            state, decision = self._next_state(record, now)

            if state is None:
                track_rate_limit_decision(False)
                logger.warning(
                    "rate_limit_exceeded",
                    client_ip=identity.client_ip,
                    authenticated=bool(identity.token),
                    limit=self.limit,
                    retry_after_seconds=decision.retry_after_seconds,
                )
                return decision

            expected = record.revision if record is not None else None
            written = await self.store.compare_and_set(
                NAMESPACE_RATE,
                key,
                expected,
                state,
                expires_at=now + self.window_seconds,
            )
            if written:
                track_rate_limit_decision(True)
                logger.debug(
                    "rate_limit_check_passed",
                    client_ip=identity.client_ip,
                    request_count=state["request_count"],
                    remaining=decision.remaining,
                )
                return decision

            logger.debug("rate_limit_write_conflict", client_ip=identity.client_ip, attempt=attempt)

        logger.error("rate_limit_contention", client_ip=identity.client_ip, attempts=MAX_CAS_ATTEMPTS)
        raise StoreContentionError(details={"namespace": NAMESPACE_RATE})

    async def status(self, identity: RateLimitIdentity) -> RateLimitDecision:
        """Report the identity's budget without charging a request."""
        now = self.clock()
        record = await self.store.get(NAMESPACE_RATE, identity.key)
        if record is None or now - float(record.value["window_start"]) >= self.window_seconds:
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=self.limit,
                reset_in_seconds=self.window_seconds,
            )

        window_start = float(record.value["window_start"])
        count = int(record.value["request_count"])
        seconds_left = self._seconds_left(window_start, now)
        allowed = count < self.limit
        return RateLimitDecision(
            allowed=allowed,
            limit=self.limit,
            remaining=max(self.limit - count, 0),
            reset_in_seconds=seconds_left,
            retry_after_seconds=None if allowed else seconds_left,
        )

    async def reset(self, identity: RateLimitIdentity) -> bool:
        """Forget the identity's window. True if one existed."""
        removed = await self.store.delete(NAMESPACE_RATE, identity.key)
        logger.info("rate_limit_reset", client_ip=identity.client_ip, removed=removed)
        return removed
