"""Dependencies that hand gatekeeper services to route handlers.

Services live on ``app.state``; they are created in the application
lifespan (see ``searchgate.api.main``) so every request shares one store,
one upstream client and one rate limiter.
"""

import hmac
from typing import Annotated

from fastapi import Depends, Header, Request

from searchgate.api.middleware.logging import get_client_ip
from searchgate.core.config import Settings
from searchgate.core.exceptions import (
    AuthenticationError,
    InvalidInternalKeyError,
    NotFoundError,
    RateLimitError,
)
from searchgate.gateway.authenticator import TokenAuthenticator, extract_bearer
from searchgate.gateway.gatekeeper import Gatekeeper
from searchgate.gateway.rate_limiter import RateLimiter, RateLimitIdentity
from searchgate.store.base import Store


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> Store:
    return request.app.state.store


def get_authenticator(request: Request) -> TokenAuthenticator:
    return request.app.state.authenticator


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_gatekeeper(request: Request) -> Gatekeeper:
    return request.app.state.gatekeeper


def get_client_address(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> str:
    return get_client_ip(request, trust_proxy_headers=settings.trust_proxy_headers)


def get_bearer_token(
    authorization: Annotated[str | None, Header()] = None,
) -> str | None:
    """Raw bearer token from the ``Authorization`` header, if any."""
    return extract_bearer(authorization)


async def require_bearer_token(
    token: Annotated[str | None, Depends(get_bearer_token)],
    authenticator: Annotated[TokenAuthenticator, Depends(get_authenticator)],
) -> str:
    """A bearer token that currently verifies; 401 otherwise."""
    if token is None or await authenticator.verify(token) is None:
        raise AuthenticationError()
    return token


async def rate_limit_bearer(
    client_ip: Annotated[str, Depends(get_client_address)],
    token: Annotated[str, Depends(require_bearer_token)],
    rate_limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
) -> None:
    """Charge a verified bearer for routes that bypass the gatekeeper.

    Runs after ``require_bearer_token``, so rejected tokens cost nothing and
    never create a rate window.
    """
    decision = await rate_limiter.admit(RateLimitIdentity(client_ip, token))
    if not decision.allowed:
        raise RateLimitError(
            retry_after=decision.retry_after_seconds,
            limit=decision.limit,
            window_seconds=rate_limiter.window_seconds,
        )


def require_internal_key(
    settings: Annotated[Settings, Depends(get_app_settings)],
    x_internal_key: Annotated[str | None, Header()] = None,
) -> None:
    """Guard service-to-service endpoints with ``X-Internal-Key``.

    The endpoints do not exist (404) when no internal key is configured.
    """
    if not settings.internal_api_key:
        raise NotFoundError("Token minting is disabled")
    if x_internal_key is None or not hmac.compare_digest(
        x_internal_key.encode("utf-8"), settings.internal_api_key.encode("utf-8")
    ):
        raise InvalidInternalKeyError()
