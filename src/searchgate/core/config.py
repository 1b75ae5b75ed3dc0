"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "your-super-secret-key-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "SearchGate"
    app_env: Literal["development", "staging", "production"] = "development"
    debug: bool = False

    # API
    api_v1_prefix: str = "/api/v1"

    # CORS
    cors_allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Only enable behind a reverse proxy that overwrites X-Forwarded-For
    trust_proxy_headers: bool = False

    # Store
    store_backend: Literal["sql", "redis", "memory"] = "sql"
    database_url: str = "sqlite+aiosqlite:///./searchgate.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_key_prefix: str = "searchgate"

    # Tokens
    jwt_secret_key: str = DEFAULT_JWT_SECRET
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 86400
    require_auth: bool = True
    internal_api_key: str | None = None

    # Rate Limiting
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 3600
    rate_limit_prune_interval_seconds: int = 60

    # Response cache
    cache_ttl_seconds: int = 3600

    # Upstream search API
    upstream_base_url: str = "https://api.nytimes.com/svc/search/v2/articlesearch.json"
    upstream_api_key: str = ""
    upstream_timeout_seconds: float = 30.0
    upstream_sort: str | None = "newest"

    @field_validator("jwt_secret_key")
    @classmethod
    def validate_jwt_secret_key(cls, v: str, info) -> str:
        """Validate JWT secret key is not using default value in production."""
        app_env = info.data.get("app_env", "development")
        if app_env == "production" and v == DEFAULT_JWT_SECRET:
            raise ValueError(
                "JWT_SECRET_KEY must be set to a secure value in production. "
                "Set the JWT_SECRET_KEY environment variable to a secure random string."
            )
        if app_env == "production" and len(v) < 32:
            raise ValueError(
                "JWT_SECRET_KEY must be at least 32 characters long in production."
            )
        return v

    @field_validator(
        "token_ttl_seconds",
        "rate_limit_max_requests",
        "rate_limit_window_seconds",
        "cache_ttl_seconds",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Limits, windows and TTLs must be strictly positive."""
        if v <= 0:
            raise ValueError("must be a positive integer")
        return v

    @field_validator("upstream_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("UPSTREAM_TIMEOUT_SECONDS must be positive")
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.app_env == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
