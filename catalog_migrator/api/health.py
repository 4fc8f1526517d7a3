"""Health check endpoints.

Provides endpoints for monitoring service health and readiness.
"""

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from catalog_migrator.infrastructure.config import settings
from catalog_migrator.infrastructure.database import get_engine

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
        service="catalog-migrator",
        version=settings.api_version,
    )


@router.get("/ready")
async def readiness_check() -> JSONResponse:
    """Check if the catalog store accepts connections.

    Returns:
        Readiness status; 503 when the database is unreachable.
    """
    if settings.catalog_store == "memory":
        return JSONResponse({"status": "ready", "catalog_store": "memory"})

    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unavailable", "catalog_store": "database", "error": str(e)},
        )
    return JSONResponse({"status": "ready", "catalog_store": "database"})
