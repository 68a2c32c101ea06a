"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from storefront.api.dependencies import get_store
from storefront.domain.exceptions import StorageError
from storefront.infrastructure.config import settings
from storefront.infrastructure.database import CatalogStore

logger = structlog.get_logger()

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response schema."""

    status: str
    service: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health.

    Returns:
        Health status with service name and version.
    """
    return HealthResponse(
        status="healthy",
        service="storefront-catalog",
        version=settings.api_version,
    )


@router.get("/ready", response_model=None)
async def readiness_check(
    store: Annotated[CatalogStore, Depends(get_store)],
) -> dict[str, str] | JSONResponse:
    """Check if the catalog database answers queries.

    Returns:
        Readiness status; 503 when the store is unreachable.
    """
    try:
        await store.ping()
    except StorageError as e:
        logger.warning("Readiness check failed", error=e.message)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable"},
        )
    return {"status": "ready"}
