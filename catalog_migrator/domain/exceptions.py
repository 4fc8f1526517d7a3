"""Domain exceptions.

Errors raised by the migration pipeline. Fetch errors are fatal to the
phase that requested them; record and image errors are collected into the
run's error list instead of propagating.
"""

from typing import Any


class DomainError(Exception):
    """Base class for all domain exceptions.

    All domain errors should inherit from this class to allow
    catching domain-specific errors at the application layer.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize domain error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# State Machine Errors
# ============================================================================


class InvalidStateTransitionError(DomainError):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        target_state: str,
        allowed_transitions: list[str] | None = None,
    ) -> None:
        """Initialize invalid state transition error.

        Args:
            entity_type: Type of entity (e.g., "Migration").
            entity_id: ID of the entity.
            current_state: Current state of the entity.
            target_state: Attempted target state.
            allowed_transitions: List of allowed target states from current state.
        """
        allowed = allowed_transitions or []
        message = (
            f"Cannot transition {entity_type}({entity_id}) "
            f"from '{current_state}' to '{target_state}'. "
            f"Allowed transitions: {allowed}"
        )
        super().__init__(
            message,
            details={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "current_state": current_state,
                "target_state": target_state,
                "allowed_transitions": allowed,
            },
        )


# ============================================================================
# Source Errors
# ============================================================================


class SourceFetchError(DomainError):
    """Raised when the source platform is unreachable or returns non-2xx.

    Aborts only the request that failed; the caller decides whether the
    whole fetch is lost.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        endpoint: str | None = None,
    ) -> None:
        """Initialize source fetch error.

        Args:
            message: Human-readable error message.
            status_code: HTTP status code, if a response was received.
            endpoint: API endpoint that failed.
        """
        super().__init__(
            message,
            details={"status_code": status_code, "endpoint": endpoint},
        )
        self.status_code = status_code
        self.endpoint = endpoint


# ============================================================================
# Import Errors
# ============================================================================


class RecordImportError(DomainError):
    """Raised when a single category or product cannot be imported."""

    def __init__(self, record_type: str, record_name: str, reason: str) -> None:
        """Initialize record import error.

        Args:
            record_type: "category" or "product".
            record_name: Name of the remote record.
            reason: Why the import failed.
        """
        super().__init__(
            f"Failed to import {record_type} {record_name}: {reason}",
            details={
                "record_type": record_type,
                "record_name": record_name,
                "reason": reason,
            },
        )


class ImageDownloadError(DomainError):
    """Raised inside the image pipeline for a single failed download.

    Never escapes the pipeline; it is converted into a failed download result.
    """

    def __init__(self, url: str, reason: str) -> None:
        """Initialize image download error.

        Args:
            url: Remote image URL.
            reason: Why the download failed.
        """
        super().__init__(reason, details={"url": url})
        self.url = url


# ============================================================================
# Run Errors
# ============================================================================


class MigrationInProgressError(DomainError):
    """Raised when a migration is triggered while another one is running."""

    def __init__(self, migration_id: str, step: str) -> None:
        """Initialize migration in progress error.

        Args:
            migration_id: ID of the active migration.
            step: Current step of the active migration.
        """
        super().__init__(
            f"Migration {migration_id} already in progress (step: {step})",
            details={"migration_id": migration_id, "step": step},
        )
        self.migration_id = migration_id


class SourceNotConfiguredError(DomainError):
    """Raised when source credentials are missing."""

    def __init__(self, missing: list[str]) -> None:
        """Initialize source not configured error.

        Args:
            missing: Names of missing fields.
        """
        super().__init__(
            f"Missing required fields: {', '.join(missing)}",
            details={"missing": missing},
        )
