"""Authentication routes.

Credentials are owned by the user service. Once it has checked a password
it asks for a token through ``POST /tokens``, authenticating itself with
``X-Internal-Key``. End users only ever present the bearer token.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from searchgate.api.dependencies.services import (
    get_authenticator,
    rate_limit_bearer,
    require_bearer_token,
    require_internal_key,
)
from searchgate.core.exceptions import AuthenticationError
from searchgate.gateway.authenticator import TokenAuthenticator
from searchgate.schemas.auth import SessionResponse, TokenIssueRequest, TokenResponse

router = APIRouter()


@router.post(
    "/tokens",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_internal_key)],
)
async def issue_token(
    body: TokenIssueRequest,
    authenticator: Annotated[TokenAuthenticator, Depends(get_authenticator)],
) -> TokenResponse:
    """Mint a bearer token for a user the caller has already authenticated."""
    issued = await authenticator.issue(body.subject)
    return TokenResponse(access_token=issued.token, expires_at=issued.expires_at)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(rate_limit_bearer)],
)
async def logout(
    token: Annotated[str, Depends(require_bearer_token)],
    authenticator: Annotated[TokenAuthenticator, Depends(get_authenticator)],
) -> Response:
    """Revoke the presented token. Later requests with it get 401."""
    if not await authenticator.revoke(token):
        # Revoked concurrently by another request.
        raise AuthenticationError()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/session",
    response_model=SessionResponse,
    dependencies=[Depends(rate_limit_bearer)],
)
async def current_session(
    token: Annotated[str, Depends(require_bearer_token)],
    authenticator: Annotated[TokenAuthenticator, Depends(get_authenticator)],
) -> SessionResponse:
    """Describe the presented token."""
    session = await authenticator.session(token)
    if session is None:
        raise AuthenticationError()
    return SessionResponse(
        subject=session.subject,
        issued_at=session.issued_at,
        expires_at=session.expires_at,
    )
