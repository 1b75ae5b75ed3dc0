"""Pydantic schemas for request and response bodies."""

from searchgate.schemas.auth import SessionResponse, TokenIssueRequest, TokenResponse

__all__ = [
    "SessionResponse",
    "TokenIssueRequest",
    "TokenResponse",
]
