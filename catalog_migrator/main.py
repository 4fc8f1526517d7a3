"""Catalog migrator API application module.

This module initializes the FastAPI application and configures
core middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from catalog_migrator.api.health import router as health_router
from catalog_migrator.api.middleware import setup_middleware
from catalog_migrator.api.migration import router as migration_router
from catalog_migrator.application.migration_service import get_migration_service
from catalog_migrator.infrastructure.config import settings
from catalog_migrator.infrastructure.database import create_tables, get_engine
from catalog_migrator.infrastructure.logging import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup and shutdown events.

    Args:
        app: The FastAPI application instance.

    Yields:
        None after startup, cleanup happens after yield.
    """
    configure_logging(settings.log_level, json_logs=not settings.debug)
    logger.info(
        "Starting catalog migrator",
        version=settings.api_version,
        debug=settings.debug,
        catalog_store=settings.catalog_store,
    )

    if settings.catalog_store == "database":
        await create_tables()

    yield

    service = get_migration_service()
    if service.cancel():
        await service.wait()

    if settings.catalog_store == "database":
        await get_engine().dispose()
    logger.info("Shutting down catalog migrator")


app = FastAPI(
    title="Catalog Migrator",
    description="One-shot WooCommerce catalog import",
    version=settings.api_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Request ID, API key auth
setup_middleware(app)

app.include_router(health_router, tags=["Health"])
app.include_router(migration_router)


# ============================================================================
# Custom Exception Handlers
# ============================================================================


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", [])
    else:
        error_code = "ERROR"
        message = str(detail)
        details = []

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": request_id,
        },
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )

    return JSONResponse(
        status_code=500,
        content={
            "error_code": "INTERNAL_ERROR",
            "message": "An internal error occurred",
            "details": [],
            "request_id": request_id,
        },
    )
