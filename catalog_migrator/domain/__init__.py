"""Domain layer for the catalog migrator.

Contains the migration state machine, run entities and the error taxonomy.
"""

from catalog_migrator.domain.entities import (
    ImageProgress,
    MigrationProgress,
    MigrationResult,
    MigrationStats,
    ValidationReport,
)
from catalog_migrator.domain.exceptions import (
    DomainError,
    ImageDownloadError,
    InvalidStateTransitionError,
    MigrationInProgressError,
    RecordImportError,
    SourceFetchError,
    SourceNotConfiguredError,
)
from catalog_migrator.domain.state_machines import (
    MigrationStep,
    validate_migration_transition,
)

__all__ = [
    # Entities
    "ImageProgress",
    "MigrationProgress",
    "MigrationResult",
    "MigrationStats",
    "ValidationReport",
    # State machine
    "MigrationStep",
    "validate_migration_transition",
    # Exceptions
    "DomainError",
    "ImageDownloadError",
    "InvalidStateTransitionError",
    "MigrationInProgressError",
    "RecordImportError",
    "SourceFetchError",
    "SourceNotConfiguredError",
]
