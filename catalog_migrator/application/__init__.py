"""Application layer module.

Contains the migration orchestrator and the trigger service that runs it.
"""

from catalog_migrator.application.migration_service import (
    MigrationService,
    get_migration_service,
    reset_migration_service,
)
from catalog_migrator.application.orchestrator import (
    CancellationToken,
    MigrationOrchestrator,
    ProgressTracker,
)

__all__ = [
    "CancellationToken",
    "MigrationOrchestrator",
    "ProgressTracker",
    "MigrationService",
    "get_migration_service",
    "reset_migration_service",
]
