"""FastAPI middleware components."""

from searchgate.api.middleware.exception_handler import setup_exception_handlers
from searchgate.api.middleware.logging import LoggingMiddleware, get_client_ip
from searchgate.api.middleware.metrics import MetricsMiddleware

__all__ = [
    "LoggingMiddleware",
    "MetricsMiddleware",
    "get_client_ip",
    "setup_exception_handlers",
]
