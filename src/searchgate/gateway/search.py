"""Cache-aside orchestration in front of the upstream search API.

For each operation: compute the cache key, return a live cached payload if
there is one, otherwise call upstream once and cache the reply. Failed
upstream calls are neither cached nor retried.

Concurrent misses for the same key are not de-duplicated: each caller
fetches upstream on its own and the last ``put`` wins. Entries are
replaced whole, so readers always see one complete payload.
"""

from __future__ import annotations

import json
from typing import Any, assert_never

import structlog

from searchgate.core.exceptions import UpstreamTransportError
from searchgate.core.metrics import track_upstream_time
from searchgate.gateway.cache import CACHE_MISS, ResponseCache, make_cache_key
from searchgate.gateway.operations import (
    ArticleDetails,
    ArticleNotFound,
    GatewayResult,
    Operation,
    SearchArticles,
    UpstreamUnavailable,
)
from searchgate.gateway.upstream import UpstreamClient, UpstreamResponse

logger = structlog.get_logger(__name__)


def _documents(payload: dict[str, Any]) -> list[Any] | None:
    response = payload.get("response")
    if not isinstance(response, dict):
        return None
    docs = response.get("docs")
    return docs if isinstance(docs, list) else None


class SearchGateway:
    """Serves operations from the response cache or the upstream API."""

    def __init__(
        self,
        cache: ResponseCache,
        upstream: UpstreamClient,
        *,
        cache_ttl_seconds: int | None = None,
    ) -> None:
        self.cache = cache
        self.upstream = upstream
        self.cache_ttl_seconds = cache_ttl_seconds

    @staticmethod
    def cache_key(operation: Operation) -> str:
        match operation:
            case SearchArticles(query=query, page=page):
                return make_cache_key(SearchArticles.operation_type, {"q": query, "page": page})
            case ArticleDetails(url=url):
                return make_cache_key(ArticleDetails.operation_type, {"url": url})
            case _:
                assert_never(operation)

    async def handle(
        self, operation: Operation
    ) -> GatewayResult | UpstreamUnavailable | ArticleNotFound:
        key = self.cache_key(operation)

        payload = await self.cache.get(key)
        if payload is CACHE_MISS:
            fetched = await self._fetch(operation)
            if isinstance(fetched, UpstreamUnavailable):
                return fetched
            await self.cache.put(key, fetched, self.cache_ttl_seconds)
            result = GatewayResult(payload=fetched, cached=False, cache_key=key)
        else:
            logger.info("cache_hit", operation=operation.operation_type)
            result = GatewayResult(payload=payload, cached=True, cache_key=key)

        match operation:
            case SearchArticles():
                return result
            case ArticleDetails(url=url):
                return self._article(result, url)
            case _:
                assert_never(operation)

    async def _fetch(self, operation: Operation) -> dict[str, Any] | UpstreamUnavailable:
        """Call upstream once and validate the reply shape."""
        kind = operation.operation_type
        try:
            with track_upstream_time(kind):
                response = await self.upstream.fetch(operation.upstream_params())
        except UpstreamTransportError as exc:
            reason = "timeout" if exc.timed_out else "transport_error"
            return UpstreamUnavailable(reason=reason)

        return self._parse(kind, response)

    @staticmethod
    def _parse(kind: str, response: UpstreamResponse) -> dict[str, Any] | UpstreamUnavailable:
        if not response.ok:
            return UpstreamUnavailable(reason="bad_status", status_code=response.status_code)

        try:
            payload = json.loads(response.body)
        except ValueError:
            logger.warning("upstream_request_failed", operation=kind, reason="invalid_json")
            return UpstreamUnavailable(reason="malformed_payload", status_code=response.status_code)

        if not isinstance(payload, dict):
            logger.warning("upstream_request_failed", operation=kind, reason="not_an_object")
            return UpstreamUnavailable(reason="malformed_payload", status_code=response.status_code)

        if kind == ArticleDetails.operation_type and _documents(payload) is None:
            logger.warning("upstream_request_failed", operation=kind, reason="missing_docs")
            return UpstreamUnavailable(reason="malformed_payload", status_code=response.status_code)

        logger.info("upstream_request_succeeded", operation=kind)
        return payload

    @staticmethod
    def _article(result: GatewayResult, url: str) -> GatewayResult | ArticleNotFound:
        docs = _documents(result.payload) if isinstance(result.payload, dict) else None
        if not docs:
            logger.info("article_not_found", cached=result.cached)
            return ArticleNotFound(url=url)
        return GatewayResult(payload=docs[0], cached=result.cached, cache_key=result.cache_key)
