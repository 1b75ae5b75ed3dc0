"""Typed gateway operations and gatekeeper outcomes.

Operations form a closed set; ``SearchGateway`` dispatches over them with
a ``match`` statement that ``assert_never`` keeps exhaustive. Outcomes are
plain values returned by the gatekeeper; nothing in the core raises for an
expected failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar
from urllib.parse import urlsplit

from searchgate.gateway.rate_limiter import RateLimitDecision


@dataclass(frozen=True)
class SearchArticles:
    """Free-text article search, one result page at a time."""

    operation_type: ClassVar[str] = "search"

    query: str
    page: int = 0

    def validate(self) -> InvalidRequest | None:
        if not self.query or not self.query.strip():
            return InvalidRequest("Search query is required", field="q")
        if self.page < 0:
            return InvalidRequest("Page must be zero or greater", field="page")
        return None

    def upstream_params(self) -> dict[str, Any]:
        return {"q": self.query.strip(), "page": self.page}


@dataclass(frozen=True)
class ArticleDetails:
    """Single article lookup by its canonical web URL."""

    operation_type: ClassVar[str] = "details"

    url: str

    def validate(self) -> InvalidRequest | None:
        if not self.url or not self.url.strip():
            return InvalidRequest("Article URL is required", field="url")
        parts = urlsplit(self.url.strip())
        if parts.scheme not in ("http", "https") or not parts.netloc:
            return InvalidRequest("Article URL must be an absolute http(s) URL", field="url")
        return None

    def upstream_params(self) -> dict[str, Any]:
        escaped = self.url.strip().replace('"', '\\"')
        return {"fq": f'web_url:"{escaped}"'}


Operation = SearchArticles | ArticleDetails


# Outcomes


@dataclass(frozen=True)
class Allowed:
    payload: Any
    cached: bool
    subject: int | None = None
    rate: RateLimitDecision | None = None

    outcome: ClassVar[str] = "allowed"


@dataclass(frozen=True)
class Unauthenticated:
    outcome: ClassVar[str] = "unauthenticated"


@dataclass(frozen=True)
class RateLimited:
    retry_after_seconds: int
    rate: RateLimitDecision | None = None

    outcome: ClassVar[str] = "rate_limited"


@dataclass(frozen=True)
class UpstreamUnavailable:
    """Transport failure, timeout, non-200 status or malformed payload."""

    reason: str
    status_code: int | None = None

    outcome: ClassVar[str] = "upstream_unavailable"


@dataclass(frozen=True)
class InvalidRequest:
    message: str
    field: str | None = None

    outcome: ClassVar[str] = "invalid_request"


@dataclass(frozen=True)
class ArticleNotFound:
    url: str

    outcome: ClassVar[str] = "article_not_found"


@dataclass(frozen=True)
class GatewayResult:
    """Payload served by ``SearchGateway``, fresh or from cache."""

    payload: Any
    cached: bool
    cache_key: str = field(default="", compare=False)


Outcome = Allowed | Unauthenticated | RateLimited | UpstreamUnavailable | InvalidRequest | ArticleNotFound
