"""Request logging middleware for FastAPI.

Binds a correlation ID, a fresh request ID and basic request facts to the
structlog context for the lifetime of each request, logs start and
completion, and echoes both IDs in the response headers.
"""

from __future__ import annotations

import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from searchgate.core.logging import (
    bind_contextvars,
    clear_contextvars,
    clear_correlation_id,
    get_logger,
    set_correlation_id,
)

logger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"


def get_client_ip(request: Request, *, trust_proxy_headers: bool = False) -> str:
    """Client address.

    ``X-Forwarded-For`` and ``X-Real-IP`` are only honoured behind a trusted
    reverse proxy; otherwise any caller could pick its own rate-limit identity.
    """
    if trust_proxy_headers:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            # First hop is the original client
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("x-real-ip")
        if real_ip:
            return real_ip.strip()

    if request.client:
        return request.client.host

    return "unknown"


class LoggingMiddleware(BaseHTTPMiddleware):
    """Structured request logging with correlation IDs."""

    def __init__(self, app: ASGIApp, *, trust_proxy_headers: bool = False) -> None:
        super().__init__(app)
        self.trust_proxy_headers = trust_proxy_headers

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        clear_contextvars()

        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid4())
        set_correlation_id(correlation_id)
        request_id = str(uuid4())

        # Query strings are left out: they can carry upstream keys or tokens.
        bind_contextvars(
            correlation_id=correlation_id,
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            client_ip=get_client_ip(request, trust_proxy_headers=self.trust_proxy_headers),
            user_agent=request.headers.get("user-agent"),
        )

        start_time = time.perf_counter()
        logger.info("request_started")

        try:
            response = await call_next(request)

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "request_completed",
                status_code=response.status_code,
                duration_ms=round(duration_ms, 2),
            )

            response.headers[CORRELATION_ID_HEADER] = correlation_id
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        except Exception as exc:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.exception(
                "request_failed",
                duration_ms=round(duration_ms, 2),
                error_type=type(exc).__name__,
            )
            raise

        finally:
            clear_contextvars()
            clear_correlation_id()
