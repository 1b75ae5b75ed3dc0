"""Tests for authentication endpoints."""

import pytest
from helpers import START_TIME, TEST_INTERNAL_KEY, make_settings
from httpx import ASGITransport, AsyncClient

from searchgate.api.main import create_app, install_services
from searchgate.gateway.upstream import UpstreamClient
from searchgate.store.memory import MemoryStore

TOKENS_URL = "/api/v1/auth/tokens"
LOGOUT_URL = "/api/v1/auth/logout"
SESSION_URL = "/api/v1/auth/session"
SEARCH_URL = "/api/v1/articles/search"


@pytest.mark.asyncio
async def test_issue_token(client: AsyncClient) -> None:
    """The user service can mint a token with the internal key."""
    response = await client.post(
        TOKENS_URL,
        json={"subject": 7},
        headers={"X-Internal-Key": TEST_INTERNAL_KEY},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["access_token"]
    assert data["token_type"] == "bearer"
    assert data["expires_at"] == int(START_TIME) + 86400

    search = await client.get(
        SEARCH_URL,
        params={"q": "technology"},
        headers={"Authorization": f"Bearer {data['access_token']}"},
    )
    assert search.status_code == 200


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{}, {"X-Internal-Key": "wrong-key"}])
async def test_issue_token_requires_internal_key(client: AsyncClient, headers: dict[str, str]) -> None:
    """Missing or wrong internal keys are rejected."""
    response = await client.post(TOKENS_URL, json={"subject": 7}, headers=headers)

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "SG2001"


@pytest.mark.asyncio
async def test_issue_token_invalid_subject(client: AsyncClient) -> None:
    """Subjects must be positive integers."""
    response = await client.post(
        TOKENS_URL,
        json={"subject": 0},
        headers={"X-Internal-Key": TEST_INTERNAL_KEY},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "SG4000"


@pytest.mark.asyncio
async def test_issue_token_disabled_without_internal_key(
    memory_store: MemoryStore, upstream_client: UpstreamClient
) -> None:
    """Token minting does not exist when no internal key is configured."""
    app = create_app(make_settings(internal_api_key=None))
    install_services(app, memory_store, upstream_client)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        response = await ac.post(TOKENS_URL, json={"subject": 7}, headers={"X-Internal-Key": "x"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_session(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    """The session endpoint describes the presented token."""
    response = await client.get(SESSION_URL, headers=auth_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["subject"] == 42
    assert data["issued_at"] == int(START_TIME)
    assert data["expires_at"] == int(START_TIME) + 86400


@pytest.mark.asyncio
async def test_session_requires_token(client: AsyncClient) -> None:
    """No token, no session."""
    response = await client.get(SESSION_URL)

    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_logout_revokes_token(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    """After logout the same token is rejected everywhere."""
    response = await client.post(LOGOUT_URL, headers=auth_headers)
    assert response.status_code == 204

    session = await client.get(SESSION_URL, headers=auth_headers)
    assert session.status_code == 401

    search = await client.get(SEARCH_URL, params={"q": "technology"}, headers=auth_headers)
    assert search.status_code == 401

    again = await client.post(LOGOUT_URL, headers=auth_headers)
    assert again.status_code == 401


@pytest.mark.asyncio
async def test_logout_requires_token(client: AsyncClient) -> None:
    """Logout without a token is a 401."""
    response = await client.post(LOGOUT_URL)

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_auth_routes_are_rate_limited(client: AsyncClient, auth_headers: dict[str, str]) -> None:
    """Auth endpoints draw from the same per-identity budget."""
    for _ in range(5):
        response = await client.get(SESSION_URL, headers=auth_headers)
        assert response.status_code == 200

    response = await client.get(SESSION_URL, headers=auth_headers)

    assert response.status_code == 429
    assert response.headers["retry-after"] == "60"


@pytest.mark.asyncio
async def test_token_minting_is_not_rate_limited(client: AsyncClient) -> None:
    """Every login goes through the user service, so minting has no budget."""
    statuses = []
    for subject in range(1, 8):
        response = await client.post(
            TOKENS_URL,
            json={"subject": subject},
            headers={"X-Internal-Key": TEST_INTERNAL_KEY},
        )
        statuses.append(response.status_code)

    assert statuses == [201] * 7


@pytest.mark.asyncio
async def test_invalid_tokens_are_not_charged(
    client: AsyncClient, memory_store: MemoryStore, auth_headers: dict[str, str]
) -> None:
    """Rejected bearers get 401 without opening a rate window."""
    rows_before = len(memory_store)

    for i in range(20):
        response = await client.post(LOGOUT_URL, headers={"Authorization": f"Bearer junk{i}"})
        assert response.status_code == 401
        response = await client.get(SESSION_URL, headers={"Authorization": f"Bearer junk{i}"})
        assert response.status_code == 401

    assert len(memory_store) == rows_before

    for _ in range(5):
        response = await client.get(SESSION_URL, headers=auth_headers)
        assert response.status_code == 200
