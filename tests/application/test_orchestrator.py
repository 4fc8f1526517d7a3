"""Tests for the migration orchestrator."""

import pytest
from structlog.testing import capture_logs

from catalog_migrator.application.orchestrator import (
    CancellationToken,
    MigrationOrchestrator,
    ProgressTracker,
)
from catalog_migrator.catalog.repository import InMemoryCatalogRepository
from catalog_migrator.domain import MigrationStep
from catalog_migrator.domain.exceptions import (
    InvalidStateTransitionError,
    MigrationInProgressError,
    SourceFetchError,
)


@pytest.fixture
def catalog(make_category, make_product):
    """Small source catalog: two categories (child listed first) and three products."""
    bats = make_category(1, "Bats")
    willow = make_category(2, "English Willow", parent_id=1)
    balls = make_category(3, "Balls")
    products = [
        make_product(
            101,
            "SG Test Bat",
            categories=[willow, bats],
            images=["https://cdn.example.com/bat-front.jpg", "https://cdn.example.com/missing.jpg"],
            attributes={"Size": ["SH", "LH"]},
            regular_price="199.99",
        ),
        make_product(102, "Kookaburra Cricket Ball", categories=[balls], price="25"),
        make_product(103, "SG Test Bat Junior", sku="SG-JR", categories=[bats]),
    ]
    return [willow, bats, balls], products


class TestProgressTracker:
    """Tests for ProgressTracker."""

    def test_snapshot_is_a_copy(self) -> None:
        """Mutating a snapshot does not change the tracked progress."""
        tracker = ProgressTracker("m-1")
        tracker.add_error("first")

        snapshot = tracker.snapshot()
        snapshot.errors.append("tampered")

        assert tracker.errors == ["first"]

    def test_transition_is_validated(self) -> None:
        """Illegal step changes are rejected."""
        tracker = ProgressTracker("m-1")
        with pytest.raises(InvalidStateTransitionError):
            tracker.transition(MigrationStep.PRODUCTS, "skip ahead")
        assert tracker.step == MigrationStep.IDLE

    def test_transition_resets_counters(self) -> None:
        """A step change resets the counter and image progress."""
        tracker = ProgressTracker("m-1")
        tracker.transition(MigrationStep.STARTING, "Starting", total=5)
        tracker.update(3, "working")
        tracker.transition(MigrationStep.CATEGORIES, "Importing categories...", total=2)

        progress = tracker.snapshot()
        assert progress.current == 0
        assert progress.total == 2
        assert progress.message == "Importing categories..."


class TestMigrationRun:
    """Tests for MigrationOrchestrator.run."""

    @pytest.mark.asyncio
    async def test_full_run(self, repository, pipeline, catalog) -> None:
        """A run imports categories parent-first, products, images and attributes."""
        categories, products = catalog
        orchestrator = MigrationOrchestrator(repository, pipeline)

        result = await orchestrator.run(categories, products)

        assert result.success is True
        assert result.message == (
            "Migration completed successfully! Imported 3 categories and 3 products."
        )
        assert result.stats.categories_imported == 3
        assert result.stats.products_imported == 3
        assert result.stats.products_skipped == 0
        assert result.stats.images_processed == 2
        assert result.stats.attributes_created == 1
        # The 404 image falls back to its remote URL and is reported.
        assert result.stats.errors == 1
        assert result.errors == ["Image download failed for SG Test Bat: HTTP 404: Not Found"]
        assert (result.validation.categories, result.validation.products) == (3, 3)
        assert result.validation.images == 2

        by_slug = {c.slug: c for c in repository.categories}
        assert by_slug["english-willow"].parent_id == by_slug["bats"].id

        progress = orchestrator.get_progress()
        assert progress.step == MigrationStep.COMPLETE
        assert progress.image_progress is None

    @pytest.mark.asyncio
    async def test_primary_category_follows_source_order(
        self, repository, pipeline, catalog
    ) -> None:
        """The first category listed on the product is the primary one."""
        categories, products = catalog
        await MigrationOrchestrator(repository, pipeline).run(categories, products)

        willow = next(c for c in repository.categories if c.slug == "english-willow")
        bat = next(p for p in repository.products if p.slug == "sg-test-bat")
        primary = [a for a in repository.assignments if a.product_id == bat.id and a.is_primary]
        assert [a.category_id for a in primary] == [willow.id]

    @pytest.mark.asyncio
    async def test_second_run_is_additive(self, repository, pipeline, catalog) -> None:
        """Re-running against the same store skips every existing product."""
        categories, products = catalog
        await MigrationOrchestrator(repository, pipeline).run(categories, products)

        result = await MigrationOrchestrator(repository, pipeline).run(categories, products)

        assert result.success is True
        assert result.stats.products_imported == 0
        assert result.stats.products_skipped == 3
        assert result.stats.categories_imported == 3
        assert len(repository.products) == 3
        assert len(repository.categories) == 3
        assert len(repository.images) == 2

    @pytest.mark.asyncio
    async def test_same_orchestrator_runs_again(self, repository, pipeline, catalog) -> None:
        """A finished orchestrator starts its next run from a fresh progress record."""
        categories, products = catalog
        orchestrator = MigrationOrchestrator(repository, pipeline)
        first = await orchestrator.run(categories, products)
        assert first.stats.errors == 1

        second = await orchestrator.run(categories, products)

        assert second.success is True
        assert second.stats.products_imported == 0
        assert second.stats.products_skipped == 3
        assert second.errors == []
        progress = orchestrator.get_progress()
        assert progress.step == MigrationStep.COMPLETE
        assert progress.errors == []
        assert len(repository.products) == 3

    @pytest.mark.asyncio
    async def test_run_rejected_while_active(self, repository, pipeline, catalog) -> None:
        """Starting a run while the orchestrator is mid-run is rejected."""
        categories, products = catalog
        orchestrator = MigrationOrchestrator(repository, pipeline, migration_id="m-1")
        orchestrator.tracker.transition(MigrationStep.STARTING, "Starting migration...")

        with pytest.raises(MigrationInProgressError) as exc_info:
            await orchestrator.run(categories, products)

        assert exc_info.value.details == {"migration_id": "m-1", "step": "starting"}
        assert repository.products == []

    @pytest.mark.asyncio
    async def test_record_failures_do_not_stop_the_run(
        self, repository, pipeline, make_category, make_product
    ) -> None:
        """Bad records are reported and the remaining ones still import."""
        categories = [make_category(1, "", slug=""), make_category(2, "Bats")]
        products = [make_product(201, ""), make_product(202, "SG Test Bat")]

        result = await MigrationOrchestrator(repository, pipeline).run(categories, products)

        assert result.success is True
        assert result.stats.categories_imported == 1
        assert result.stats.products_imported == 1
        assert result.errors == [
            "Failed to import category #1: missing name and slug",
            "Failed to import product #201: missing name",
        ]

    @pytest.mark.asyncio
    async def test_unexpected_record_error_is_wrapped(
        self, repository, pipeline, make_product, monkeypatch
    ) -> None:
        """A store failure on one product is reported with the product name."""

        async def broken(product):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(repository, "create_product", broken)

        result = await MigrationOrchestrator(repository, pipeline).run(
            [], [make_product(1, "SG Test Bat")]
        )

        assert result.success is True
        assert result.errors == ["Failed to import product SG Test Bat: connection reset"]

    @pytest.mark.asyncio
    async def test_validation_failure_fails_the_run(
        self, repository, pipeline, make_product, monkeypatch
    ) -> None:
        """A failure outside record boundaries moves the run to ERROR."""

        async def broken():
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(repository, "count_categories", broken)
        orchestrator = MigrationOrchestrator(repository, pipeline)

        result = await orchestrator.run([], [make_product(1, "SG Test Bat")])

        assert result.success is False
        assert result.message == "Migration failed: store unavailable"
        assert result.stats.products_imported == 1
        assert orchestrator.get_progress().step == MigrationStep.ERROR

    @pytest.mark.asyncio
    async def test_image_progress_reported(
        self, repository, pipeline, make_product, monkeypatch
    ) -> None:
        """Image progress is visible while a product's images are recorded."""
        orchestrator = MigrationOrchestrator(repository, pipeline)
        seen = []
        create_image_record = repository.create_image_record

        async def observing(image):
            seen.append(orchestrator.get_progress().image_progress)
            return await create_image_record(image)

        monkeypatch.setattr(repository, "create_image_record", observing)

        await orchestrator.run(
            [], [make_product(1, "SG Test Bat", images=["https://cdn.example.com/a.jpg"])]
        )

        assert seen[0].current_product == "SG Test Bat"
        assert seen[0].current_image == 1
        assert seen[0].total_images == 1
        assert seen[0].status.startswith("Downloaded: /images/products/")
        assert orchestrator.get_progress().image_progress is None


class TestCancellation:
    """Tests for cooperative cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_between_products(self, pipeline, catalog) -> None:
        """Cancelling stops at the next record and keeps the work done so far."""
        categories, products = catalog
        token = CancellationToken()

        class CancellingRepository(InMemoryCatalogRepository):
            async def create_product(self, product):
                created = await super().create_product(product)
                token.cancel()
                return created

        repository = CancellingRepository()
        orchestrator = MigrationOrchestrator(repository, pipeline)

        result = await orchestrator.run(categories, products, token)

        assert result.success is False
        assert result.stats.products_imported == 1
        assert result.message == (
            "Migration cancelled after importing 3 categories and 1 products."
        )
        assert len(repository.products) == 1
        assert orchestrator.get_progress().step == MigrationStep.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_before_categories(self, repository, pipeline, catalog) -> None:
        """A token cancelled up front stops before the first category."""
        categories, products = catalog
        token = CancellationToken()
        token.cancel()

        result = await MigrationOrchestrator(repository, pipeline).run(
            categories, products, token
        )

        assert result.success is False
        assert repository.categories == []


class TestRunFromSource:
    """Tests for MigrationOrchestrator.run_from_source."""

    @pytest.mark.asyncio
    async def test_fetch_then_import(self, repository, pipeline, catalog) -> None:
        """Fetched records are imported."""
        categories, products = catalog

        async def fetch():
            return categories, products

        result = await MigrationOrchestrator(repository, pipeline).run_from_source(fetch)

        assert result.success is True
        assert result.stats.products_imported == 3

    @pytest.mark.asyncio
    async def test_fetch_failure(self, repository, pipeline) -> None:
        """A source failure ends the run in ERROR without touching the store."""

        async def fetch():
            raise SourceFetchError("Source API error: 503 Service Unavailable", status_code=503)

        orchestrator = MigrationOrchestrator(repository, pipeline)
        with capture_logs() as logs:
            result = await orchestrator.run_from_source(fetch)

        assert result.success is False
        assert result.message == (
            "Migration failed: Source fetch failed: Source API error: 503 Service Unavailable"
        )
        assert result.stats.errors == 1
        assert orchestrator.get_progress().step == MigrationStep.ERROR
        assert repository.categories == []
        assert any(log["event"] == "Migration error" for log in logs)

    @pytest.mark.asyncio
    async def test_retry_after_fetch_failure(self, repository, pipeline, catalog) -> None:
        """An orchestrator that ended in ERROR can fetch and import on the next run."""
        categories, products = catalog
        attempts = []

        async def fetch():
            attempts.append(1)
            if len(attempts) == 1:
                raise SourceFetchError("Source request failed: timeout")
            return categories, products

        orchestrator = MigrationOrchestrator(repository, pipeline)
        assert (await orchestrator.run_from_source(fetch)).success is False

        result = await orchestrator.run_from_source(fetch)

        assert result.success is True
        assert result.stats.products_imported == 3
        assert orchestrator.get_progress().step == MigrationStep.COMPLETE
