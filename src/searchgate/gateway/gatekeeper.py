"""Request gatekeeper: validation, authentication, rate limiting, gateway.

``Gatekeeper.process`` runs the checks in a fixed order and returns the
first outcome that stops the request:

1. malformed operation -> ``InvalidRequest`` (consumes no rate budget)
2. missing or invalid bearer token -> ``Unauthenticated``
3. identity over its window budget -> ``RateLimited``
4. upstream failure -> ``UpstreamUnavailable``; empty detail lookup ->
   ``ArticleNotFound``; otherwise ``Allowed`` with the payload.

Cache hits are charged against the rate limit like any other request.
Store failures propagate as ``StoreError`` and fail only this request.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from searchgate.core.metrics import track_outcome
from searchgate.gateway.authenticator import TokenAuthenticator
from searchgate.gateway.operations import (
    Allowed,
    ArticleNotFound,
    Operation,
    Outcome,
    RateLimited,
    Unauthenticated,
    UpstreamUnavailable,
)
from searchgate.gateway.rate_limiter import RateLimiter, RateLimitIdentity
from searchgate.gateway.search import SearchGateway

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class InboundRequest:
    client_ip: str
    operation: Operation
    bearer_token: str | None = None

    def __repr__(self) -> str:
        return (
            f"InboundRequest(client_ip={self.client_ip!r}, operation={self.operation!r}, "
            f"has_token={self.bearer_token is not None})"
        )


class Gatekeeper:
    """Composes the authenticator, limiter and search gateway."""

    def __init__(
        self,
        authenticator: TokenAuthenticator,
        rate_limiter: RateLimiter,
        gateway: SearchGateway,
        *,
        require_auth: bool = True,
    ) -> None:
        self.authenticator = authenticator
        self.rate_limiter = rate_limiter
        self.gateway = gateway
        self.require_auth = require_auth

    async def process(self, request: InboundRequest) -> Outcome:
        outcome = await self._decide(request)
        track_outcome(outcome.outcome)
        logger.info(
            "gatekeeper_decision",
            outcome=outcome.outcome,
            operation=request.operation.operation_type,
            client_ip=request.client_ip,
        )
        return outcome

    async def _decide(self, request: InboundRequest) -> Outcome:
        invalid = request.operation.validate()
        if invalid is not None:
            return invalid

        subject: int | None = None
        if request.bearer_token is not None:
            subject = await self.authenticator.verify(request.bearer_token)
            if subject is None:
                return Unauthenticated()
        elif self.require_auth:
            return Unauthenticated()

        decision = await self.rate_limiter.admit(
            RateLimitIdentity(request.client_ip, request.bearer_token)
        )
        if not decision.allowed:
            return RateLimited(retry_after_seconds=decision.retry_after_seconds or 1, rate=decision)

        result = await self.gateway.handle(request.operation)
        if isinstance(result, (UpstreamUnavailable, ArticleNotFound)):
            return result
        return Allowed(payload=result.payload, cached=result.cached, subject=subject, rate=decision)
