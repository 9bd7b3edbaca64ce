"""Health check endpoints."""

from fastapi import APIRouter, status
from pydantic import BaseModel

from app.config import settings
from app.dependencies import Container

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    environment: str


class DetailedHealthResponse(BaseModel):
    """Detailed health check response model."""

    status: str
    version: str
    environment: str
    storage_backend: str
    store: str
    redis: str


@router.get(
    "/health",
    response_model=HealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Basic health check",
)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns:
        Basic health status
    """
    return HealthResponse(
        status="healthy",
        version=settings.app_version,
        environment=settings.environment,
    )


@router.get(
    "/health/detailed",
    response_model=DetailedHealthResponse,
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Detailed health check",
)
async def detailed_health_check(container: Container) -> DetailedHealthResponse:
    """
    Detailed health check with appointment store and Redis status.

    Redis only backs the report cache and is reported as "disabled" when
    caching is off.

    Returns:
        Detailed health status including dependencies
    """
    store_healthy = await container.store.ping()
    if container.cache is None:
        redis_state = "disabled"
    else:
        redis_state = "healthy" if container.cache.ping() else "unhealthy"

    return DetailedHealthResponse(
        status="healthy" if store_healthy and redis_state != "unhealthy" else "degraded",
        version=settings.app_version,
        environment=settings.environment,
        storage_backend=settings.storage_backend,
        store="healthy" if store_healthy else "unhealthy",
        redis=redis_state,
    )


@router.get(
    "/ping",
    status_code=status.HTTP_200_OK,
    tags=["Health"],
    summary="Simple ping",
)
async def ping() -> dict[str, str]:
    """
    Simple ping endpoint.

    Returns:
        Pong response
    """
    return {"message": "pong"}
