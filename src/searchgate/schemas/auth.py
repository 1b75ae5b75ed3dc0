"""Authentication schemas."""

from pydantic import BaseModel, Field


class TokenIssueRequest(BaseModel):
    """Schema for a token mint request from the user service."""

    subject: int = Field(..., ge=1, description="User ID the token is issued for")


class TokenResponse(BaseModel):
    """Schema for token response."""

    access_token: str
    token_type: str = "bearer"
    expires_at: int


class SessionResponse(BaseModel):
    """Schema for the current bearer token's session."""

    subject: int
    issued_at: int
    expires_at: int
