"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from catalog_migrator.api.health import router as health_router
from catalog_migrator.api.migration import router as migration_router

__all__ = [
    "health_router",
    "migration_router",
]
