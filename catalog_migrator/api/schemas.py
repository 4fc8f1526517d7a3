"""API schemas for the catalog migrator.

Pydantic models for request/response validation and serialization.
"""

from typing import Any

from pydantic import BaseModel, Field

from catalog_migrator.domain.entities import MigrationProgress, MigrationResult
from catalog_migrator.domain.exceptions import DomainError


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorDetail(BaseModel):
    """Detailed error information."""

    field: str | None = Field(default=None, description="Field that caused the error")
    message: str = Field(..., description="Error message")


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: list[ErrorDetail] = Field(
        default_factory=list, description="Additional error details"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


def error_details(error: DomainError) -> list[dict[str, Any]]:
    """Flatten a domain error's details into ``ErrorDetail`` dicts."""
    return [
        {"field": key, "message": str(value)}
        for key, value in error.details.items()
        if value is not None
    ]


# ============================================================================
# Source Schemas
# ============================================================================


class SourceCredentials(BaseModel):
    """WooCommerce credentials. Omitted fields fall back to the environment."""

    site_url: str | None = Field(default=None, description="Store base URL")
    consumer_key: str | None = Field(default=None, description="REST API consumer key")
    consumer_secret: str | None = Field(
        default=None, description="REST API consumer secret"
    )


class ConnectionTestResponse(BaseModel):
    """Connection test result."""

    success: bool
    message: str
    site_info: dict[str, Any] = Field(default_factory=dict)
    total_products: int = 0
    total_categories: int = 0


# ============================================================================
# Migration Schemas
# ============================================================================


class MigrationStartRequest(SourceCredentials):
    """Request to start a migration run."""

    scope: str = Field(
        default="all",
        min_length=1,
        description=(
            "'all', an exclusion profile name (e.g. 'exclude-wk-balls') "
            "or a category keyword"
        ),
    )


class MigrationStartResponse(BaseModel):
    """Accepted migration run."""

    migration_id: str
    scope: str
    message: str = "Migration started successfully"


class ImageProgressSchema(BaseModel):
    """Image download progress for the current product."""

    current_product: str
    current_image: int
    total_images: int
    status: str
    local_path: str | None = None


class MigrationStatsSchema(BaseModel):
    """Run counters."""

    categories_imported: int
    products_imported: int
    products_skipped: int
    images_processed: int
    attributes_created: int
    errors: int


class ValidationReportSchema(BaseModel):
    """Catalog totals counted after the run."""

    categories: int
    products: int
    images: int


class MigrationResultSchema(BaseModel):
    """Final summary of a run."""

    success: bool
    message: str
    stats: MigrationStatsSchema
    errors: list[str]
    validation: ValidationReportSchema | None = None

    @classmethod
    def from_result(cls, result: MigrationResult) -> "MigrationResultSchema":
        return cls.model_validate(result.to_dict())


class MigrationProgressResponse(BaseModel):
    """Progress of the current (or last) run."""

    migration_id: str
    step: str
    current: int
    total: int
    message: str
    errors: list[str]
    image_progress: ImageProgressSchema | None = None
    result: MigrationResultSchema | None = None

    @classmethod
    def from_progress(
        cls,
        migration_id: str,
        progress: MigrationProgress,
        result: MigrationResult | None = None,
    ) -> "MigrationProgressResponse":
        return cls(
            migration_id=migration_id,
            result=MigrationResultSchema.from_result(result) if result else None,
            **progress.to_dict(),
        )


class MigrationCancelResponse(BaseModel):
    """Cancellation request outcome."""

    migration_id: str | None
    cancelled: bool
    message: str


class ImageStatsResponse(BaseModel):
    """Local image library summary."""

    total_images: int
    total_size: int
    buckets: list[str]
