"""Article search routes.

Each handler builds an operation, runs it through the gatekeeper, and maps
the outcome to an HTTP response. Non-allowed outcomes are raised as
``SearchGateException`` subclasses and rendered by the central handlers.
"""

from typing import Annotated, Any, assert_never

from fastapi import APIRouter, Depends, Query, Response

from searchgate.api.dependencies.services import (
    get_bearer_token,
    get_client_address,
    get_gatekeeper,
)
from searchgate.core.exceptions import (
    ArticleNotFoundError,
    AuthenticationError,
    InvalidRequestError,
    RateLimitError,
    UpstreamUnavailableError,
)
from searchgate.gateway.gatekeeper import Gatekeeper, InboundRequest
from searchgate.gateway.operations import (
    Allowed,
    ArticleDetails,
    ArticleNotFound,
    InvalidRequest,
    Operation,
    Outcome,
    RateLimited,
    SearchArticles,
    Unauthenticated,
    UpstreamUnavailable,
)
from searchgate.gateway.rate_limiter import RateLimitDecision

router = APIRouter()


def rate_limit_headers(decision: RateLimitDecision | None) -> dict[str, str]:
    if decision is None:
        return {}
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_in_seconds),
    }


def render_outcome(outcome: Outcome, response: Response) -> Any:
    """Return the payload for ``Allowed``; raise for everything else."""
    match outcome:
        case Allowed(payload=payload, cached=cached, rate=rate):
            response.headers["X-Cache"] = "HIT" if cached else "MISS"
            response.headers.update(rate_limit_headers(rate))
            return payload
        case Unauthenticated():
            raise AuthenticationError()
        case RateLimited(retry_after_seconds=retry_after, rate=rate):
            raise RateLimitError(
                retry_after=retry_after,
                limit=rate.limit if rate else None,
                headers=rate_limit_headers(rate),
            )
        case UpstreamUnavailable(reason=reason, status_code=status_code):
            details: dict[str, Any] = {"reason": reason}
            if status_code is not None:
                details["upstream_status"] = status_code
            raise UpstreamUnavailableError(details=details)
        case InvalidRequest(message=message, field=field):
            raise InvalidRequestError(message, field=field, user_message=message)
        case ArticleNotFound(url=url):
            raise ArticleNotFoundError(details={"url": url})
        case _:
            assert_never(outcome)


async def _run(
    gatekeeper: Gatekeeper,
    client_ip: str,
    token: str | None,
    operation: Operation,
    response: Response,
) -> Any:
    outcome = await gatekeeper.process(
        InboundRequest(client_ip=client_ip, operation=operation, bearer_token=token)
    )
    return render_outcome(outcome, response)


@router.get("/search")
async def search_articles(
    response: Response,
    gatekeeper: Annotated[Gatekeeper, Depends(get_gatekeeper)],
    client_ip: Annotated[str, Depends(get_client_address)],
    token: Annotated[str | None, Depends(get_bearer_token)],
    q: Annotated[str, Query(description="Free-text search query")] = "",
    page: Annotated[int, Query(description="Zero-based result page")] = 0,
) -> Any:
    """Search articles. Served from cache when an identical search is live."""
    return await _run(gatekeeper, client_ip, token, SearchArticles(query=q, page=page), response)


@router.get("/details")
async def article_details(
    response: Response,
    gatekeeper: Annotated[Gatekeeper, Depends(get_gatekeeper)],
    client_ip: Annotated[str, Depends(get_client_address)],
    token: Annotated[str | None, Depends(get_bearer_token)],
    url: Annotated[str, Query(description="Canonical web URL of the article")] = "",
) -> Any:
    """Look up a single article by URL."""
    return await _run(gatekeeper, client_ip, token, ArticleDetails(url=url), response)
