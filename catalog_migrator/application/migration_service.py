"""Migration trigger service.

Starts migration runs in the background, one at a time per process, and
exposes their progress, cancellation and final result.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import structlog

from catalog_migrator.application.orchestrator import CancellationToken, MigrationOrchestrator
from catalog_migrator.assets.pipeline import ImageAssetPipeline
from catalog_migrator.catalog.filters import EXCLUSION_PROFILES
from catalog_migrator.catalog.repository import (
    CatalogRepository,
    InMemoryCatalogRepository,
    SqlAlchemyCatalogRepository,
)
from catalog_migrator.catalog.source_models import RemoteCategory, RemoteProduct
from catalog_migrator.domain.entities import MigrationProgress, MigrationResult
from catalog_migrator.domain.exceptions import MigrationInProgressError, SourceFetchError
from catalog_migrator.infrastructure.config import settings
from catalog_migrator.infrastructure.database import get_session_factory
from catalog_migrator.infrastructure.image_storage import (
    ImageStorage,
    LocalImageStorage,
    StorageStats,
)
from catalog_migrator.infrastructure.source_client import (
    ProductFilter,
    SourceClient,
    SourceConfig,
)

logger = structlog.get_logger()

SCOPE_ALL = "all"


# ============================================================================
# Scopes
# ============================================================================


def narrow_categories(
    categories: list[RemoteCategory],
    products: list[RemoteProduct],
    keyword: str | None = None,
) -> list[RemoteCategory]:
    """Keep the categories referenced by the selected products.

    Args:
        categories: All remote categories.
        products: Selected products.
        keyword: Also keep categories whose name contains this keyword.

    Returns:
        Narrowed categories, in input order.
    """
    referenced = {ref.id for product in products for ref in product.categories}
    query = keyword.strip().lower() if keyword else None
    return [
        c
        for c in categories
        if c.id in referenced or (query is not None and query in c.name.lower())
    ]


async def fetch_catalog(
    client: SourceClient,
    scope: str = SCOPE_ALL,
) -> tuple[list[RemoteCategory], list[RemoteProduct]]:
    """Fetch the categories and products a migration scope covers.

    Scopes:
        ``all``: every category and every published product.
        An exclusion profile name (``exclude-wk-balls``): all products the
            profile keeps, with the categories they reference.
        Any other value: a category keyword; products of matching
            categories, with the categories they reference plus those whose
            name contains the keyword.

    Args:
        client: Source client.
        scope: Migration scope.

    Returns:
        Tuple of (categories, products).
    """
    categories = await client.fetch_all_categories()
    key = scope.strip().lower()

    if key == SCOPE_ALL:
        products = await client.fetch_all_products()
        return categories, products

    if key in EXCLUSION_PROFILES:
        products = await client.fetch_all_products(
            ProductFilter(exclusion=EXCLUSION_PROFILES[key])
        )
        return narrow_categories(categories, products), products

    products = await client.fetch_products_by_category_keyword(scope)
    return narrow_categories(categories, products, keyword=scope), products


# ============================================================================
# Results
# ============================================================================


@dataclass
class ConnectionCheck:
    """Connection test outcome with basic catalog counts."""

    success: bool
    message: str
    site_info: dict[str, Any] = field(default_factory=dict)
    total_products: int = 0
    total_categories: int = 0


# ============================================================================
# Service
# ============================================================================


def build_repository() -> CatalogRepository:
    """Create the catalog repository selected by ``catalog_store``."""
    if settings.catalog_store == "memory":
        return InMemoryCatalogRepository()
    return SqlAlchemyCatalogRepository(get_session_factory())


class MigrationService:
    """Single-run migration trigger.

    A second ``start`` while a run is active raises
    ``MigrationInProgressError``. Each run gets a fresh orchestrator (and so
    a fresh progress record).
    """

    def __init__(
        self,
        repository: CatalogRepository | None = None,
        storage: ImageStorage | None = None,
        client_factory: Callable[[SourceConfig], SourceClient] = SourceClient,
    ) -> None:
        """Initialize service.

        Args:
            repository: Catalog repository (built from settings if omitted).
            storage: Image storage (local filesystem if omitted).
            client_factory: Builds a source client for a config.
        """
        self.repository = repository or build_repository()
        self.storage = storage or LocalImageStorage()
        self.client_factory = client_factory
        self._orchestrator: MigrationOrchestrator | None = None
        self._cancel_token: CancellationToken | None = None
        self._task: asyncio.Task[MigrationResult] | None = None
        self._last_result: MigrationResult | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def migration_id(self) -> str | None:
        return self._orchestrator.migration_id if self._orchestrator else None

    @property
    def last_result(self) -> MigrationResult | None:
        return self._last_result

    def start(self, source_config: SourceConfig, scope: str = SCOPE_ALL) -> str:
        """Start a migration run in the background.

        Must be called from a running event loop.

        Args:
            source_config: Source connection settings.
            scope: Migration scope (see ``fetch_catalog``).

        Returns:
            Migration ID.

        Raises:
            MigrationInProgressError: If a run is already active.
        """
        if self.is_running and self._orchestrator is not None:
            raise MigrationInProgressError(
                self._orchestrator.migration_id,
                self._orchestrator.tracker.step.value,
            )

        pipeline = ImageAssetPipeline(self.storage)
        self._orchestrator = MigrationOrchestrator(self.repository, pipeline)
        self._cancel_token = CancellationToken()
        self._last_result = None

        logger.info(
            "Starting migration",
            migration_id=self._orchestrator.migration_id,
            site_url=source_config.site_url,
            scope=scope,
        )
        self._task = asyncio.create_task(
            self._run(self._orchestrator, pipeline, source_config, scope, self._cancel_token)
        )
        return self._orchestrator.migration_id

    async def _run(
        self,
        orchestrator: MigrationOrchestrator,
        pipeline: ImageAssetPipeline,
        source_config: SourceConfig,
        scope: str,
        cancel_token: CancellationToken,
    ) -> MigrationResult:
        client = self.client_factory(source_config)
        try:
            result = await orchestrator.run_from_source(
                lambda: fetch_catalog(client, scope), cancel_token
            )
        finally:
            await client.close()
            await pipeline.close()

        self._last_result = result
        logger.info(
            "Migration finished",
            migration_id=orchestrator.migration_id,
            success=result.success,
            categories_imported=result.stats.categories_imported,
            products_imported=result.stats.products_imported,
            products_skipped=result.stats.products_skipped,
            images_processed=result.stats.images_processed,
            errors=result.stats.errors,
        )
        return result

    def get_progress(self) -> MigrationProgress | None:
        """Get progress of the current (or last) run, or None if none started."""
        if self._orchestrator is None:
            return None
        return self._orchestrator.get_progress()

    def cancel(self) -> bool:
        """Request cancellation of the active run.

        Returns:
            True if a run was active and cancellation was requested.
        """
        if not self.is_running or self._cancel_token is None:
            return False
        self._cancel_token.cancel()
        logger.info("Migration cancellation requested", migration_id=self.migration_id)
        return True

    async def wait(self) -> MigrationResult | None:
        """Wait for the active run to finish.

        Returns:
            Result of the current (or last) run, or None if none started.
        """
        if self._task is None:
            return None
        return await self._task

    async def test_connection(self, source_config: SourceConfig) -> ConnectionCheck:
        """Check the source connection and count its catalog.

        Args:
            source_config: Source connection settings.

        Returns:
            ConnectionCheck; failures are reported, not raised.
        """
        client = self.client_factory(source_config)
        try:
            status = await client.test_connection()
            if not status.success:
                return ConnectionCheck(success=False, message=status.message)

            try:
                total_products = await client.count_products()
                total_categories = len(await client.fetch_all_categories())
            except SourceFetchError as e:
                return ConnectionCheck(
                    success=False,
                    message=f"Connection succeeded but catalog fetch failed: {e.message}",
                    site_info=status.site_info,
                )
        finally:
            await client.close()

        return ConnectionCheck(
            success=True,
            message=status.message,
            site_info=status.site_info,
            total_products=total_products,
            total_categories=total_categories,
        )

    async def image_stats(self) -> StorageStats:
        """Summarize the local image library."""
        return await self.storage.stats()


# ============================================================================
# Service Factory
# ============================================================================


_migration_service: MigrationService | None = None


def get_migration_service() -> MigrationService:
    """Get the migration service singleton.

    Returns:
        MigrationService instance.
    """
    global _migration_service
    if _migration_service is None:
        _migration_service = MigrationService()
    return _migration_service


def reset_migration_service() -> None:
    """Drop the migration service singleton."""
    global _migration_service
    _migration_service = None
