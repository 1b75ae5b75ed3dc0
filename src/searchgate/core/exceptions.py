"""Custom exceptions for SearchGate.

This module provides the exception hierarchy used at the HTTP boundary:
- Structured error information
- HTTP status code mapping
- Machine-readable error codes
- Contextual details for debugging

The gatekeeper core reports failures as typed outcomes; the API layer turns
those outcomes into these exceptions. Store backends raise
``StoreUnavailableError`` directly.
"""

from __future__ import annotations

from enum import Enum
from http import HTTPStatus
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable error codes for API responses."""

    # General errors (1xxx)
    INTERNAL_ERROR = "SG1000"
    UNKNOWN_ERROR = "SG1001"

    # Authentication errors (2xxx)
    AUTHENTICATION_REQUIRED = "SG2000"
    INVALID_INTERNAL_KEY = "SG2001"

    # Validation errors (4xxx)
    VALIDATION_ERROR = "SG4000"
    INVALID_INPUT = "SG4001"

    # Resource errors (5xxx)
    RESOURCE_NOT_FOUND = "SG5000"
    ARTICLE_NOT_FOUND = "SG5001"

    # Store errors (6xxx)
    STORE_UNAVAILABLE = "SG6000"
    STORE_CONTENTION = "SG6001"

    # Upstream errors (7xxx)
    UPSTREAM_UNAVAILABLE = "SG7000"
    UPSTREAM_TIMEOUT = "SG7001"

    # Rate limiting errors (8xxx)
    RATE_LIMIT_EXCEEDED = "SG8000"


class SearchGateException(Exception):
    """Base exception for all SearchGate errors.

    Attributes:
        message: Human-readable error message.
        error_code: Machine-readable error code.
        http_status: HTTP status code for API responses.
        details: Additional context for debugging.
        user_message: User-friendly message (may differ from message).
        headers: Extra response headers (``Retry-After``, ``WWW-Authenticate``).
    """

    message: str = "An unexpected error occurred"
    error_code: ErrorCode = ErrorCode.UNKNOWN_ERROR
    http_status: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR
    user_message: str | None = None

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: ErrorCode | None = None,
        http_status: HTTPStatus | None = None,
        details: dict[str, Any] | None = None,
        user_message: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.error_code = error_code or self.__class__.error_code
        self.http_status = http_status or self.__class__.http_status
        self.details = details or {}
        self.user_message = user_message or self.__class__.user_message or self.message
        self.headers = headers or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": {
                "code": self.error_code.value,
                "message": self.user_message,
                "details": self.details if self.details else None,
            }
        }

    def __str__(self) -> str:
        return f"[{self.error_code.value}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code.value}, "
            f"http_status={self.http_status.value}, "
            f"details={self.details!r}"
            f")"
        )


# ============================================================================
# Authentication Exceptions
# ============================================================================


class AuthenticationError(SearchGateException):
    """Bad, expired or revoked bearer token.

    The cause is deliberately never reported to the caller.
    """

    message = "Authentication required"
    error_code = ErrorCode.AUTHENTICATION_REQUIRED
    http_status = HTTPStatus.UNAUTHORIZED
    user_message = "Could not validate credentials"

    def __init__(self, message: str | None = None, **kwargs: Any) -> None:
        headers = kwargs.pop("headers", None) or {"WWW-Authenticate": "Bearer"}
        super().__init__(message, headers=headers, **kwargs)


class InvalidInternalKeyError(SearchGateException):
    """Service-to-service key missing or wrong."""

    message = "Invalid internal API key"
    error_code = ErrorCode.INVALID_INTERNAL_KEY
    http_status = HTTPStatus.UNAUTHORIZED


# ============================================================================
# Validation Exceptions
# ============================================================================


class ValidationError(SearchGateException):
    """Validation-related errors."""

    message = "Validation error"
    error_code = ErrorCode.VALIDATION_ERROR
    http_status = HTTPStatus.BAD_REQUEST

    def __init__(
        self,
        message: str | None = None,
        *,
        field: str | None = None,
        value: Any = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)

        super().__init__(message, details=details, **kwargs)


class InvalidRequestError(ValidationError):
    """Required request parameters are missing or malformed."""

    message = "Invalid request"
    error_code = ErrorCode.INVALID_INPUT


# ============================================================================
# Resource Exceptions
# ============================================================================


class NotFoundError(SearchGateException):
    """Resource not found errors."""

    message = "Resource not found"
    error_code = ErrorCode.RESOURCE_NOT_FOUND
    http_status = HTTPStatus.NOT_FOUND


class ArticleNotFoundError(NotFoundError):
    """The upstream search returned no document for the article URL."""

    message = "Article not found"
    error_code = ErrorCode.ARTICLE_NOT_FOUND


# ============================================================================
# Store Exceptions
# ============================================================================


class StoreError(SearchGateException):
    """Persistent store errors. Fatal to the request, never to the process."""

    message = "Store error"
    error_code = ErrorCode.STORE_UNAVAILABLE
    http_status = HTTPStatus.SERVICE_UNAVAILABLE
    user_message = "The service is temporarily unavailable. Please try again later."


class StoreUnavailableError(StoreError):
    """The storage backend could not be reached or rejected the operation."""

    message = "Store unavailable"


class StoreContentionError(StoreError):
    """A compare-and-set loop gave up after too many conflicting writers."""

    message = "Too many concurrent updates for one record"
    error_code = ErrorCode.STORE_CONTENTION


# ============================================================================
# Upstream Exceptions
# ============================================================================


class UpstreamError(SearchGateException):
    """Upstream search API errors."""

    message = "Upstream search API unavailable"
    error_code = ErrorCode.UPSTREAM_UNAVAILABLE
    http_status = HTTPStatus.BAD_GATEWAY
    user_message = "The search service is temporarily unavailable"


class UpstreamTransportError(UpstreamError):
    """Connection failure or timeout talking to the upstream API."""

    def __init__(self, message: str | None = None, *, timed_out: bool = False, **kwargs: Any) -> None:
        self.timed_out = timed_out
        if timed_out:
            kwargs.setdefault("error_code", ErrorCode.UPSTREAM_TIMEOUT)
        super().__init__(message, **kwargs)


class UpstreamUnavailableError(UpstreamError):
    """Transport failure, non-success status, or malformed upstream payload."""


# ============================================================================
# Rate Limiting Exceptions
# ============================================================================


class RateLimitError(SearchGateException):
    """Rate limit exceeded errors."""

    message = "Rate limit exceeded"
    error_code = ErrorCode.RATE_LIMIT_EXCEEDED
    http_status = HTTPStatus.TOO_MANY_REQUESTS
    user_message = "You have made too many requests. Please wait before trying again."

    def __init__(
        self,
        message: str | None = None,
        *,
        retry_after: int | None = None,
        limit: int | None = None,
        window_seconds: int | None = None,
        **kwargs: Any,
    ) -> None:
        details = kwargs.pop("details", {}) or {}
        headers = kwargs.pop("headers", {}) or {}
        if retry_after:
            details["retry_after_seconds"] = retry_after
            headers["Retry-After"] = str(retry_after)
        if limit:
            details["limit"] = limit
        if window_seconds:
            details["window_seconds"] = window_seconds

        self.retry_after = retry_after
        super().__init__(message, details=details, headers=headers, **kwargs)


# ============================================================================
# Exception to HTTP Status Mapping
# ============================================================================


def get_http_status_for_exception(exc: Exception) -> HTTPStatus:
    """Get the appropriate HTTP status code for an exception."""
    if isinstance(exc, SearchGateException):
        return exc.http_status

    exception_status_map: dict[type, HTTPStatus] = {
        ValueError: HTTPStatus.BAD_REQUEST,
        TypeError: HTTPStatus.BAD_REQUEST,
        PermissionError: HTTPStatus.FORBIDDEN,
        TimeoutError: HTTPStatus.GATEWAY_TIMEOUT,
        ConnectionError: HTTPStatus.BAD_GATEWAY,
    }

    for exc_type, status in exception_status_map.items():
        if isinstance(exc, exc_type):
            return status

    return HTTPStatus.INTERNAL_SERVER_ERROR
