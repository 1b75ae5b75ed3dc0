"""Exception handlers for FastAPI.

Every error leaves the service in one envelope::

    {"success": false, "error": {"code", "message", "details"?}, "correlation_id"?}

Headers carried by the exception (``Retry-After``, ``WWW-Authenticate``) are
copied onto the response.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from searchgate.core.exceptions import (
    ErrorCode,
    SearchGateException,
    get_http_status_for_exception,
)
from searchgate.core.logging import get_correlation_id, get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = get_logger(__name__)

STATUS_TO_ERROR_CODE = {
    400: ErrorCode.INVALID_INPUT,
    401: ErrorCode.AUTHENTICATION_REQUIRED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    405: ErrorCode.INVALID_INPUT,
    429: ErrorCode.RATE_LIMIT_EXCEEDED,
    500: ErrorCode.INTERNAL_ERROR,
    502: ErrorCode.UPSTREAM_UNAVAILABLE,
    503: ErrorCode.STORE_UNAVAILABLE,
    504: ErrorCode.UPSTREAM_TIMEOUT,
}


def create_error_response(
    error_code: str,
    message: str,
    details: dict[str, Any] | None = None,
    correlation_id: str | None = None,
) -> dict[str, Any]:
    """Create a standardized error response.

    Args:
        error_code: Machine-readable error code.
        message: Human-readable error message.
        details: Additional error details.
        correlation_id: Request correlation ID.

    Returns:
        Standardized error response dictionary.
    """
    response: dict[str, Any] = {
        "success": False,
        "error": {
            "code": error_code,
            "message": message,
        },
    }

    if details:
        response["error"]["details"] = details

    if correlation_id:
        response["correlation_id"] = correlation_id

    return response


async def searchgate_exception_handler(
    request: Request,
    exc: SearchGateException,
) -> JSONResponse:
    """Handle SearchGateException and subclasses."""
    log = logger.error if exc.http_status.value >= 500 else logger.warning
    log(
        "searchgate_exception",
        error_code=exc.error_code.value,
        error_message=exc.message,
        http_status=exc.http_status.value,
        path=request.url.path,
        details=exc.details,
    )

    return JSONResponse(
        status_code=exc.http_status.value,
        content=create_error_response(
            error_code=exc.error_code.value,
            message=exc.user_message,
            details=exc.details if exc.details else None,
            correlation_id=get_correlation_id(),
        ),
        headers=exc.headers or None,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Handle FastAPI request validation errors."""
    errors = []
    for error in exc.errors():
        field_path = " -> ".join(str(loc) for loc in error["loc"])
        errors.append(
            {
                "field": field_path,
                "message": error["msg"],
                "type": error["type"],
            }
        )

    logger.warning(
        "validation_error",
        path=request.url.path,
        error_count=len(errors),
        errors=errors[:5],
    )

    return JSONResponse(
        status_code=400,
        content=create_error_response(
            error_code=ErrorCode.VALIDATION_ERROR.value,
            message="Request validation failed",
            details={"validation_errors": errors},
            correlation_id=get_correlation_id(),
        ),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Map plain HTTP exceptions (unknown routes, wrong methods) to our envelope."""
    error_code = STATUS_TO_ERROR_CODE.get(exc.status_code, ErrorCode.UNKNOWN_ERROR)

    logger.warning(
        "http_exception",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(
            error_code=error_code.value,
            message=str(exc.detail) if exc.detail else "An error occurred",
            correlation_id=get_correlation_id(),
        ),
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected exceptions.

    Logs the full exception and returns a generic error response
    to avoid leaking implementation details.
    """
    http_status = get_http_status_for_exception(exc)

    logger.exception(
        "unhandled_exception",
        error_type=type(exc).__name__,
        path=request.url.path,
    )

    return JSONResponse(
        status_code=http_status.value,
        content=create_error_response(
            error_code=ErrorCode.INTERNAL_ERROR.value,
            message="An unexpected error occurred. Please try again later.",
            correlation_id=get_correlation_id(),
        ),
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(SearchGateException, searchgate_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, generic_exception_handler)
