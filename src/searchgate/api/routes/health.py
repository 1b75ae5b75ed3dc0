"""Health check endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from searchgate import __version__
from searchgate.api.dependencies.services import get_store
from searchgate.store.base import Store

router = APIRouter()


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response with dependency status."""

    status: str
    store: bool


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check endpoint."""
    return HealthResponse(status="healthy", version=__version__)


@router.get(
    "/health/ready",
    response_model=ReadinessResponse,
    responses={
        status.HTTP_503_SERVICE_UNAVAILABLE: {
            "description": "Service not ready",
        }
    },
)
async def readiness_check(
    response: Response,
    store: Annotated[Store, Depends(get_store)],
) -> ReadinessResponse:
    """Readiness check that verifies the store is reachable."""
    store_ok = await store.ping()
    if not store_ok:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return ReadinessResponse(status="ready" if store_ok else "degraded", store=store_ok)


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics in the text exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
