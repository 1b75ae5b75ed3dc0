"""Request gatekeeper: authentication, rate limiting and cached search."""

from searchgate.gateway.authenticator import IssuedToken, TokenAuthenticator, extract_bearer
from searchgate.gateway.cache import CACHE_MISS, ResponseCache, make_cache_key
from searchgate.gateway.gatekeeper import Gatekeeper, InboundRequest
from searchgate.gateway.operations import (
    Allowed,
    ArticleDetails,
    ArticleNotFound,
    InvalidRequest,
    Outcome,
    RateLimited,
    SearchArticles,
    Unauthenticated,
    UpstreamUnavailable,
)
from searchgate.gateway.rate_limiter import RateLimitDecision, RateLimiter, RateLimitIdentity
from searchgate.gateway.search import SearchGateway
from searchgate.gateway.upstream import UpstreamClient, UpstreamResponse

__all__ = [
    "CACHE_MISS",
    "Allowed",
    "ArticleDetails",
    "ArticleNotFound",
    "Gatekeeper",
    "InboundRequest",
    "InvalidRequest",
    "IssuedToken",
    "Outcome",
    "RateLimitDecision",
    "RateLimitIdentity",
    "RateLimited",
    "RateLimiter",
    "ResponseCache",
    "SearchArticles",
    "SearchGateway",
    "TokenAuthenticator",
    "Unauthenticated",
    "UpstreamClient",
    "UpstreamResponse",
    "UpstreamUnavailable",
    "extract_bearer",
    "make_cache_key",
]
