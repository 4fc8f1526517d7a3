"""Tests for the migration trigger service and scope fetching."""

import asyncio

import pytest

from catalog_migrator.application.migration_service import (
    MigrationService,
    fetch_catalog,
    get_migration_service,
    narrow_categories,
    reset_migration_service,
)
from catalog_migrator.catalog.source_models import RemoteCategory, RemoteCategoryRef, RemoteProduct
from catalog_migrator.domain import MigrationStep
from catalog_migrator.domain.exceptions import MigrationInProgressError, SourceFetchError
from catalog_migrator.infrastructure.source_client import ConnectionTestResult, SourceConfig

CONFIG = SourceConfig(
    site_url="https://shop.example.com",
    consumer_key="ck_test",
    consumer_secret="cs_test",
)

CATEGORIES = [
    RemoteCategory(id=1, name="Bats", slug="bats"),
    RemoteCategory(id=2, name="Balls", slug="balls"),
    RemoteCategory(id=3, name="Wicket Keeping", slug="wicket-keeping"),
    RemoteCategory(id=4, name="Junior Bats", slug="junior-bats", parent_id=1),
]

BAT = RemoteProduct(
    id=10, name="SG Test Bat", categories=[RemoteCategoryRef(id=1, name="Bats", slug="bats")]
)
BALL = RemoteProduct(
    id=20, name="Kookaburra Ball", categories=[RemoteCategoryRef(id=2, name="Balls", slug="balls")]
)


class FakeSourceClient:
    """Source client stand-in serving a fixed catalog."""

    def __init__(self, config: SourceConfig, release: asyncio.Event | None = None) -> None:
        self.config = config
        self.calls: list[tuple] = []
        self.closed = False
        self.release = release or asyncio.Event()
        if release is None:
            self.release.set()
        self.fail_with: Exception | None = None

    async def fetch_all_categories(self) -> list[RemoteCategory]:
        await self.release.wait()
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append(("categories",))
        return list(CATEGORIES)

    async def fetch_all_products(self, product_filter=None) -> list[RemoteProduct]:
        self.calls.append(("products", product_filter))
        products = [BAT, BALL]
        if product_filter is not None and product_filter.exclusion is not None:
            products = product_filter.exclusion.apply(products)
        return products

    async def fetch_products_by_category_keyword(self, keyword: str) -> list[RemoteProduct]:
        self.calls.append(("keyword", keyword))
        return [BAT]

    async def test_connection(self) -> ConnectionTestResult:
        if self.fail_with is not None:
            return ConnectionTestResult(success=False, message="Connection failed: boom")
        return ConnectionTestResult(
            success=True,
            message="WooCommerce API connection successful!",
            site_info={"site_name": "Cricket Shop"},
        )

    async def count_products(self) -> int:
        return 2

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def clients() -> list[FakeSourceClient]:
    """Every fake client the service created."""
    return []


@pytest.fixture
def gate() -> asyncio.Event:
    """Open gate the fake clients wait on before serving categories."""
    event = asyncio.Event()
    event.set()
    return event


@pytest.fixture
def service(repository, storage, clients, gate) -> MigrationService:
    """Service wired to the in-memory store and fake source clients."""

    def factory(config: SourceConfig) -> FakeSourceClient:
        client = FakeSourceClient(config, release=gate)
        clients.append(client)
        return client

    return MigrationService(repository=repository, storage=storage, client_factory=factory)


class TestNarrowCategories:
    """Tests for narrow_categories."""

    def test_keeps_referenced_categories(self) -> None:
        """Only categories referenced by the products are kept."""
        assert [c.id for c in narrow_categories(CATEGORIES, [BAT])] == [1]

    def test_keeps_keyword_categories(self) -> None:
        """Categories whose name contains the keyword are kept too."""
        narrowed = narrow_categories(CATEGORIES, [BALL], keyword=" Bats ")
        assert [c.id for c in narrowed] == [1, 2, 4]


class TestFetchCatalog:
    """Tests for fetch_catalog scopes."""

    @pytest.mark.asyncio
    async def test_scope_all(self) -> None:
        """'all' fetches every category and product."""
        client = FakeSourceClient(CONFIG)

        categories, products = await fetch_catalog(client, "all")

        assert len(categories) == 4
        assert [p.id for p in products] == [10, 20]
        assert client.calls[1] == ("products", None)

    @pytest.mark.asyncio
    async def test_exclusion_scope(self) -> None:
        """An exclusion profile drops products and narrows categories."""
        client = FakeSourceClient(CONFIG)

        categories, products = await fetch_catalog(client, "exclude-wk-balls")

        assert [p.id for p in products] == [10]
        assert [c.id for c in categories] == [1]

    @pytest.mark.asyncio
    async def test_keyword_scope(self) -> None:
        """Any other scope is a category keyword."""
        client = FakeSourceClient(CONFIG)

        categories, products = await fetch_catalog(client, "Bats")

        assert ("keyword", "Bats") in client.calls
        assert [p.id for p in products] == [10]
        assert [c.id for c in categories] == [1, 4]


class TestMigrationService:
    """Tests for MigrationService."""

    @pytest.mark.asyncio
    async def test_start_and_wait(self, service, repository, clients) -> None:
        """A started run completes in the background and closes its client."""
        migration_id = service.start(CONFIG)

        result = await service.wait()

        assert service.migration_id == migration_id
        assert result.success is True
        assert result.stats.products_imported == 2
        assert service.last_result is result
        assert service.get_progress().step == MigrationStep.COMPLETE
        assert not service.is_running
        assert clients[0].closed is True
        assert len(repository.products) == 2

    @pytest.mark.asyncio
    async def test_second_start_is_rejected(self, service, clients, gate) -> None:
        """Only one run may be active at a time."""
        gate.clear()
        service.start(CONFIG)
        await asyncio.sleep(0)

        with pytest.raises(MigrationInProgressError):
            service.start(CONFIG)

        gate.set()
        await service.wait()
        assert len(clients) == 1

    @pytest.mark.asyncio
    async def test_restart_after_completion(self, service) -> None:
        """A new run may start once the previous one finished."""
        first = service.start(CONFIG)
        await service.wait()

        second = service.start(CONFIG)
        result = await service.wait()

        assert second != first
        assert result.stats.products_skipped == 2

    @pytest.mark.asyncio
    async def test_fetch_failure_result(self, service, clients, gate) -> None:
        """A source failure is reported in the result."""
        gate.clear()
        service.start(CONFIG)
        await asyncio.sleep(0)
        clients[0].fail_with = SourceFetchError("Request failed: timeout")
        gate.set()

        result = await service.wait()

        assert result.success is False
        assert result.message == "Migration failed: Source fetch failed: Request failed: timeout"
        assert service.get_progress().step == MigrationStep.ERROR
        assert clients[0].closed is True

    @pytest.mark.asyncio
    async def test_cancel(self, service) -> None:
        """Cancelling an idle service does nothing; an active run is cancelled."""
        assert service.cancel() is False

        service.start(CONFIG)
        assert service.cancel() is True
        result = await service.wait()

        assert result.success is False
        assert service.get_progress().step == MigrationStep.CANCELLED

    @pytest.mark.asyncio
    async def test_no_run_yet(self, service) -> None:
        """Before the first run there is no progress or result."""
        assert service.get_progress() is None
        assert service.migration_id is None
        assert await service.wait() is None

    @pytest.mark.asyncio
    async def test_connection_check(self, service, clients) -> None:
        """A successful check includes catalog counts."""
        check = await service.test_connection(CONFIG)

        assert check.success is True
        assert check.total_products == 2
        assert check.total_categories == 4
        assert check.site_info == {"site_name": "Cricket Shop"}
        assert clients[0].closed is True

    @pytest.mark.asyncio
    async def test_image_stats(self, service, storage) -> None:
        """Image stats come from the storage."""
        await storage.ensure_directory("cricket-bats/bat")
        await storage.write_file("cricket-bats/bat/bat-main.jpg", b"abc")

        stats = await service.image_stats()

        assert stats.total_images == 1
        assert stats.buckets == ["cricket-bats"]


class TestServiceFactory:
    """Tests for the service singleton."""

    def test_singleton(self, monkeypatch) -> None:
        """The same service is returned until reset."""
        monkeypatch.setattr(
            "catalog_migrator.application.migration_service.settings.catalog_store", "memory"
        )
        first = get_migration_service()
        assert get_migration_service() is first

        reset_migration_service()
        assert get_migration_service() is not first
