"""Migration orchestrator.

Drives a migration run: categories in hierarchy order, then products with
their images, then a validation count. Owns the run's progress record and
produces the final ``MigrationResult``.
"""

import asyncio
import copy
import threading
from collections.abc import Awaitable, Callable
from uuid import uuid4

import structlog

from catalog_migrator.assets.pipeline import DownloadResult, ImageAssetPipeline
from catalog_migrator.catalog.hierarchy import CategoryHierarchyResolver
from catalog_migrator.catalog.importer import ProductImporter
from catalog_migrator.catalog.repository import CatalogRepository
from catalog_migrator.catalog.source_models import RemoteCategory, RemoteProduct
from catalog_migrator.domain.entities import (
    ImageProgress,
    MigrationProgress,
    MigrationResult,
    MigrationStats,
    ValidationReport,
)
from catalog_migrator.domain.exceptions import (
    MigrationInProgressError,
    RecordImportError,
    SourceFetchError,
)
from catalog_migrator.domain.state_machines import MigrationStep, validate_migration_transition
from catalog_migrator.infrastructure.models import Product

logger = structlog.get_logger()

SourceFetch = Callable[[], Awaitable[tuple[list[RemoteCategory], list[RemoteProduct]]]]


# ============================================================================
# Progress & Cancellation
# ============================================================================


class ProgressTracker:
    """Lock-guarded owner of the run's progress record.

    Readers always receive deep copies, so a poll never observes a torn
    update of ``current`` and ``image_progress``.
    """

    def __init__(self, migration_id: str) -> None:
        self.migration_id = migration_id
        self._lock = threading.Lock()
        self._progress = MigrationProgress()

    def snapshot(self) -> MigrationProgress:
        """Get a deep copy of the current progress."""
        with self._lock:
            return copy.deepcopy(self._progress)

    @property
    def step(self) -> MigrationStep:
        with self._lock:
            return self._progress.step

    @property
    def errors(self) -> list[str]:
        with self._lock:
            return list(self._progress.errors)

    def transition(
        self,
        step: MigrationStep,
        message: str,
        current: int = 0,
        total: int = 0,
    ) -> None:
        """Move to another step.

        Raises:
            InvalidStateTransitionError: If the step change is not allowed.
        """
        with self._lock:
            validate_migration_transition(self.migration_id, self._progress.step, step)
            self._progress.step = step
            self._progress.current = current
            self._progress.total = total
            self._progress.message = message
            self._progress.image_progress = None
        logger.info(
            "Migration step",
            migration_id=self.migration_id,
            step=step.value,
            total=total,
            message=message,
        )

    def update(self, current: int, message: str) -> None:
        """Advance the record counter within the current step."""
        with self._lock:
            self._progress.current = current
            self._progress.message = message

    def add_error(self, error: str) -> None:
        """Append an error to the run's error list."""
        with self._lock:
            self._progress.errors.append(error)
        logger.warning("Migration error", migration_id=self.migration_id, error=error)

    def set_image_progress(self, image_progress: ImageProgress | None) -> None:
        with self._lock:
            self._progress.image_progress = image_progress


class CancellationToken:
    """Cooperative cancellation flag checked at record boundaries."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        """Request cancellation."""
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()


class _Cancelled(Exception):
    """Raised internally when the token fires at a record boundary."""


# ============================================================================
# Orchestrator
# ============================================================================


class MigrationOrchestrator:
    """Runs one migration against a catalog repository.

    Example usage:
        orchestrator = MigrationOrchestrator(repository, pipeline)
        result = await orchestrator.run(categories, products)
    """

    def __init__(
        self,
        repository: CatalogRepository,
        pipeline: ImageAssetPipeline,
        migration_id: str | None = None,
        resolver: CategoryHierarchyResolver | None = None,
        importer: ProductImporter | None = None,
    ) -> None:
        """Initialize orchestrator.

        Args:
            repository: Destination catalog repository.
            pipeline: Image pipeline.
            migration_id: Run identifier (generated if omitted).
            resolver: Category ordering strategy.
            importer: Product importer (built on the repository if omitted).
        """
        self.migration_id = migration_id or str(uuid4())
        self.repository = repository
        self.pipeline = pipeline
        self.resolver = resolver or CategoryHierarchyResolver()
        self.importer = importer or ProductImporter(repository)
        self.tracker = ProgressTracker(self.migration_id)

    def get_progress(self) -> MigrationProgress:
        """Get a snapshot of the run's progress. Safe to call at any time."""
        return self.tracker.snapshot()

    def _begin(self) -> None:
        """Reset a finished progress record before the next run.

        Raises:
            MigrationInProgressError: If a run on this orchestrator is active.
        """
        step = self.tracker.step
        if step.is_running():
            raise MigrationInProgressError(self.migration_id, step.value)
        if step.is_terminal():
            self.tracker = ProgressTracker(self.migration_id)

    async def run(
        self,
        categories: list[RemoteCategory],
        products: list[RemoteProduct],
        cancel_token: CancellationToken | None = None,
    ) -> MigrationResult:
        """Import already-fetched categories and products.

        Args:
            categories: Remote categories.
            products: Remote products.
            cancel_token: Optional cancellation token.

        Returns:
            MigrationResult.
        """
        self._begin()
        self.tracker.transition(
            MigrationStep.STARTING,
            "Starting migration...",
            total=len(categories) + len(products),
        )
        return await self._execute(categories, products, cancel_token)

    async def run_from_source(
        self,
        fetch: SourceFetch,
        cancel_token: CancellationToken | None = None,
    ) -> MigrationResult:
        """Fetch the source catalog, then import it.

        A fetch failure moves the run to ERROR and yields ``success=False``.

        Args:
            fetch: Coroutine function returning (categories, products).
            cancel_token: Optional cancellation token.

        Returns:
            MigrationResult.
        """
        self._begin()
        self.tracker.transition(MigrationStep.STARTING, "Fetching source catalog...")
        try:
            categories, products = await fetch()
        except SourceFetchError as e:
            return self._fail(f"Source fetch failed: {e.message}", MigrationStats())
        except Exception as e:
            logger.exception("Source fetch crashed", migration_id=self.migration_id)
            return self._fail(str(e) or type(e).__name__, MigrationStats())

        logger.info(
            "Fetched source catalog",
            migration_id=self.migration_id,
            categories=len(categories),
            products=len(products),
        )
        return await self._execute(categories, products, cancel_token)

    async def _execute(
        self,
        categories: list[RemoteCategory],
        products: list[RemoteProduct],
        cancel_token: CancellationToken | None,
    ) -> MigrationResult:
        stats = MigrationStats()
        try:
            mapping = await self._import_categories(categories, stats, cancel_token)
            await self._import_products(products, mapping, stats, cancel_token)

            self.tracker.transition(
                MigrationStep.VALIDATION, "Validating imported data...", current=1, total=1
            )
            validation = await self._validate()
        except _Cancelled:
            return self._cancel(stats)
        except Exception as e:
            logger.exception("Migration failed", migration_id=self.migration_id)
            return self._fail(str(e) or type(e).__name__, stats)

        errors = self.tracker.errors
        stats.errors = len(errors)
        message = (
            f"Migration completed successfully! Imported {stats.categories_imported} "
            f"categories and {stats.products_imported} products."
        )
        self.tracker.transition(MigrationStep.COMPLETE, message, current=1, total=1)
        return MigrationResult(
            success=True,
            message=message,
            stats=stats,
            errors=errors,
            validation=validation,
        )

    async def _import_categories(
        self,
        categories: list[RemoteCategory],
        stats: MigrationStats,
        cancel_token: CancellationToken | None,
    ) -> dict[int, str]:
        ordered = self.resolver.order(categories)
        self.tracker.transition(
            MigrationStep.CATEGORIES, "Importing categories...", total=len(ordered)
        )

        mapping: dict[int, str] = {}
        for index, remote in enumerate(ordered):
            self._check_cancelled(cancel_token)
            self.tracker.update(index + 1, f"Importing category: {remote.name}")
            try:
                category = await self.importer.import_category(remote, mapping)
            except Exception as e:
                self.tracker.add_error(_record_error("category", remote.name, e))
                continue
            mapping[remote.id] = category.id

        stats.categories_imported = len(mapping)
        return mapping

    async def _import_products(
        self,
        products: list[RemoteProduct],
        mapping: dict[int, str],
        stats: MigrationStats,
        cancel_token: CancellationToken | None,
    ) -> None:
        self.tracker.transition(
            MigrationStep.PRODUCTS, "Importing products...", total=len(products)
        )

        for index, remote in enumerate(products):
            self._check_cancelled(cancel_token)
            self.tracker.update(index + 1, f"Importing product: {remote.name}")
            try:
                result = await self.importer.import_product(remote, mapping)
                if not result.imported:
                    stats.products_skipped += 1
                    self.tracker.update(index + 1, f"Skipping existing product: {remote.name}")
                    continue

                for error in result.errors:
                    self.tracker.add_error(error)
                stats.attributes_created += result.attributes_created

                images = await self._import_images(result.product, remote)
                stats.images_processed += images
                stats.products_imported += 1
            except Exception as e:
                self.tracker.add_error(_record_error("product", remote.name, e))
            finally:
                self.tracker.set_image_progress(None)

    async def _import_images(self, product: Product, remote: RemoteProduct) -> int:
        if not remote.images:
            return 0

        self.tracker.set_image_progress(
            ImageProgress(
                current_product=remote.name,
                current_image=0,
                total_images=len(remote.images),
                status="Starting download...",
            )
        )

        def on_image(index: int, total: int, download: DownloadResult) -> None:
            status = (
                f"Downloaded: {download.local_path}"
                if download.success
                else f"Failed: {download.error or 'Unknown error'}"
            )
            self.tracker.set_image_progress(
                ImageProgress(
                    current_product=remote.name,
                    current_image=index + 1,
                    total_images=total,
                    status=status,
                    local_path=download.local_path or None,
                )
            )

        result = await self.importer.import_images(product, remote, self.pipeline, on_image)
        for error in result.errors:
            self.tracker.add_error(error)
        return result.saved

    async def _validate(self) -> ValidationReport:
        report = ValidationReport(
            categories=await self.repository.count_categories(),
            products=await self.repository.count_products(),
            images=await self.repository.count_images(),
        )
        logger.info(
            "Validation complete",
            migration_id=self.migration_id,
            categories=report.categories,
            products=report.products,
            images=report.images,
        )
        return report

    def _check_cancelled(self, cancel_token: CancellationToken | None) -> None:
        if cancel_token is not None and cancel_token.is_cancelled:
            raise _Cancelled()

    def _cancel(self, stats: MigrationStats) -> MigrationResult:
        errors = self.tracker.errors
        stats.errors = len(errors)
        message = (
            f"Migration cancelled after importing {stats.categories_imported} "
            f"categories and {stats.products_imported} products."
        )
        self.tracker.transition(MigrationStep.CANCELLED, message)
        return MigrationResult(success=False, message=message, stats=stats, errors=errors)

    def _fail(self, reason: str, stats: MigrationStats) -> MigrationResult:
        message = f"Migration failed: {reason}"
        self.tracker.add_error(reason)
        self.tracker.transition(MigrationStep.ERROR, message)
        errors = self.tracker.errors
        stats.errors = len(errors)
        return MigrationResult(success=False, message=message, stats=stats, errors=errors)


def _record_error(record_type: str, name: str, error: Exception) -> str:
    if isinstance(error, RecordImportError):
        return error.message
    return RecordImportError(record_type, name, str(error) or type(error).__name__).message
