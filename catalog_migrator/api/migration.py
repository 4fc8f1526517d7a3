"""Migration API endpoints.

Start, monitor and cancel catalog migration runs, and test the source
connection.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from catalog_migrator.api.schemas import (
    ConnectionTestResponse,
    ErrorResponse,
    ImageStatsResponse,
    MigrationCancelResponse,
    MigrationProgressResponse,
    MigrationStartRequest,
    MigrationStartResponse,
    SourceCredentials,
    error_details,
)
from catalog_migrator.application.migration_service import (
    MigrationService,
    get_migration_service,
)
from catalog_migrator.domain.exceptions import MigrationInProgressError, SourceNotConfiguredError
from catalog_migrator.infrastructure.source_client import SourceConfig

router = APIRouter(prefix="/migration", tags=["Migration"])


# ============================================================================
# Dependencies
# ============================================================================


def get_service() -> MigrationService:
    """Get the migration service."""
    return get_migration_service()


def resolve_source(credentials: SourceCredentials) -> SourceConfig:
    """Resolve request credentials with environment fallback.

    Raises:
        HTTPException: 400 if a credential is missing everywhere.
    """
    try:
        return SourceConfig.resolve(
            site_url=credentials.site_url,
            consumer_key=credentials.consumer_key,
            consumer_secret=credentials.consumer_secret,
        )
    except SourceNotConfiguredError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_code": "SOURCE_NOT_CONFIGURED",
                "message": e.message,
                "details": error_details(e),
            },
        ) from e


# ============================================================================
# Endpoints
# ============================================================================


@router.post(
    "/start",
    response_model=MigrationStartResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
    summary="Start migration",
    description="Start a migration run in the background.",
)
async def start_migration(
    request: MigrationStartRequest,
    service: Annotated[MigrationService, Depends(get_service)],
) -> MigrationStartResponse:
    """Start a migration run.

    Args:
        request: Credentials and scope.
        service: Migration service.

    Returns:
        Accepted run ID.

    Raises:
        HTTPException: 400 if credentials are missing, 409 if a run is active.
    """
    source_config = resolve_source(request)

    try:
        migration_id = service.start(source_config, request.scope)
    except MigrationInProgressError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                "error_code": "MIGRATION_IN_PROGRESS",
                "message": e.message,
                "details": error_details(e),
            },
        ) from e

    return MigrationStartResponse(migration_id=migration_id, scope=request.scope)


@router.get(
    "/progress",
    response_model=MigrationProgressResponse,
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get migration progress",
    description="Progress of the current run, or of the last one if none is active.",
)
async def get_progress(
    service: Annotated[MigrationService, Depends(get_service)],
) -> MigrationProgressResponse:
    """Get migration progress.

    Args:
        service: Migration service.

    Returns:
        Progress snapshot, with the final result once the run has finished.

    Raises:
        HTTPException: 404 if no run was ever started.
    """
    progress = service.get_progress()
    if progress is None or service.migration_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "NO_MIGRATION",
                "message": "No migration in progress",
            },
        )

    return MigrationProgressResponse.from_progress(
        service.migration_id, progress, service.last_result
    )


@router.post(
    "/cancel",
    response_model=MigrationCancelResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Cancel migration",
    description="Request cancellation of the active run at the next record boundary.",
)
async def cancel_migration(
    service: Annotated[MigrationService, Depends(get_service)],
) -> MigrationCancelResponse:
    """Cancel the active migration run.

    Args:
        service: Migration service.

    Returns:
        Whether a cancellation was requested.
    """
    cancelled = service.cancel()
    return MigrationCancelResponse(
        migration_id=service.migration_id,
        cancelled=cancelled,
        message="Cancellation requested" if cancelled else "No migration in progress",
    )


@router.post(
    "/test",
    response_model=ConnectionTestResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
    },
    summary="Test source connection",
    description="Check the WooCommerce connection and count its catalog.",
)
async def test_connection(
    request: SourceCredentials,
    service: Annotated[MigrationService, Depends(get_service)],
) -> ConnectionTestResponse:
    """Test the source connection.

    Args:
        request: Credentials.
        service: Migration service.

    Returns:
        Connection status, site info and catalog counts.

    Raises:
        HTTPException: 400 if credentials are missing or the connection fails.
    """
    check = await service.test_connection(resolve_source(request))

    if not check.success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "error_code": "CONNECTION_FAILED",
                "message": check.message,
            },
        )

    return ConnectionTestResponse(
        success=True,
        message=check.message,
        site_info=check.site_info,
        total_products=check.total_products,
        total_categories=check.total_categories,
    )


@router.get(
    "/images/stats",
    response_model=ImageStatsResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Image library statistics",
)
async def image_stats(
    service: Annotated[MigrationService, Depends(get_service)],
) -> ImageStatsResponse:
    """Summarize the local image library.

    Args:
        service: Migration service.

    Returns:
        Image count, total bytes and bucket folders.
    """
    stats = await service.image_stats()
    return ImageStatsResponse(
        total_images=stats.total_images,
        total_size=stats.total_size,
        buckets=stats.buckets,
    )
