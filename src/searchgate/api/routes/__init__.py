"""API routes module."""

from searchgate.api.routes.articles import router as articles_router
from searchgate.api.routes.auth import router as auth_router
from searchgate.api.routes.health import router as health_router

__all__ = [
    "articles_router",
    "auth_router",
    "health_router",
]
