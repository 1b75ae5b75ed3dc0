"""HTTP client for the upstream article search API."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from searchgate.core.config import Settings
from searchgate.core.exceptions import UpstreamTransportError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class UpstreamResponse:
    """Raw upstream reply. Interpreting the body is the caller's job."""

    status_code: int
    body: str

    @property
    def ok(self) -> bool:
        return self.status_code == 200


class UpstreamClient:
    """Thin wrapper over ``httpx.AsyncClient`` with a bounded timeout.

    The client never retries; a failed call is reported once and the
    caller decides what to do.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str = "",
        timeout_seconds: float = 30.0,
        default_sort: str | None = "newest",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.default_sort = default_sort
        self.http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> UpstreamClient:
        return cls(
            settings.upstream_base_url,
            api_key=settings.upstream_api_key,
            timeout_seconds=settings.upstream_timeout_seconds,
            default_sort=settings.upstream_sort,
            transport=transport,
        )

    def build_params(self, params: dict[str, Any]) -> dict[str, Any]:
        query = {name: value for name, value in params.items() if value is not None}
        if self.default_sort and "sort" not in query:
            query["sort"] = self.default_sort
        if self.api_key:
            query["api-key"] = self.api_key
        return query

    async def fetch(self, params: dict[str, Any]) -> UpstreamResponse:
        """GET the search endpoint with ``params``.

        Raises:
            UpstreamTransportError: connection failure or timeout.
        """
        try:
            response = await self.http_client.get(self.base_url, params=self.build_params(params))
        except httpx.TimeoutException as exc:
            logger.warning("upstream_request_failed", reason="timeout", timeout=self.timeout_seconds)
            raise UpstreamTransportError("Upstream request timed out", timed_out=True) from exc
        except httpx.HTTPError as exc:
            logger.warning("upstream_request_failed", reason="transport", error=type(exc).__name__)
            raise UpstreamTransportError(f"Upstream transport error: {type(exc).__name__}") from exc

        if response.status_code != 200:
            logger.warning("upstream_request_failed", reason="status", status_code=response.status_code)
        return UpstreamResponse(status_code=response.status_code, body=response.text)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.http_client.aclose()
