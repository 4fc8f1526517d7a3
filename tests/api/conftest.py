"""Shared fixtures for API tests."""

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from catalog_migrator.api.migration import get_service
from catalog_migrator.application.migration_service import ConnectionCheck
from catalog_migrator.domain.entities import MigrationProgress, MigrationResult
from catalog_migrator.domain.exceptions import MigrationInProgressError
from catalog_migrator.infrastructure.config import settings
from catalog_migrator.infrastructure.image_storage import StorageStats
from catalog_migrator.infrastructure.source_client import SourceConfig
from catalog_migrator.main import app


class StubMigrationService:
    """Migration service stand-in recording calls made by the API."""

    def __init__(self) -> None:
        self.started: list[tuple[SourceConfig, str]] = []
        self.tested: list[SourceConfig] = []
        self.migration_id: str | None = None
        self.progress: MigrationProgress | None = None
        self.last_result: MigrationResult | None = None
        self.running = False
        self.check = ConnectionCheck(
            success=True,
            message="WooCommerce API connection successful!",
            site_info={"site_name": "Cricket Shop"},
            total_products=120,
            total_categories=14,
        )
        self.stats = StorageStats(total_images=3, total_size=2048, buckets=["cricket-bats"])

    def start(self, source_config: SourceConfig, scope: str = "all") -> str:
        if self.running:
            raise MigrationInProgressError(self.migration_id, "products")
        self.started.append((source_config, scope))
        self.migration_id = "mig-1"
        self.running = True
        return self.migration_id

    def get_progress(self) -> MigrationProgress | None:
        return self.progress

    def cancel(self) -> bool:
        return self.running

    async def test_connection(self, source_config: SourceConfig) -> ConnectionCheck:
        self.tested.append(source_config)
        return self.check

    async def image_stats(self) -> StorageStats:
        return self.stats


@pytest.fixture
def stub_service() -> Iterator[StubMigrationService]:
    """Install a stub migration service for the duration of a test."""
    service = StubMigrationService()
    app.dependency_overrides[get_service] = lambda: service
    yield service
    app.dependency_overrides.pop(get_service, None)


@pytest.fixture
def no_env_source(monkeypatch) -> None:
    """Clear source credentials from settings."""
    monkeypatch.setattr(settings, "woocommerce_site_url", "")
    monkeypatch.setattr(settings, "woocommerce_consumer_key", "")
    monkeypatch.setattr(settings, "woocommerce_consumer_secret", "")


@pytest.fixture
def client() -> TestClient:
    """Create test client without authentication."""
    return TestClient(app)


@pytest.fixture
def auth_client() -> TestClient:
    """Create test client with valid API key authentication."""
    return TestClient(
        app,
        headers={"Authorization": f"Bearer {settings.migrator_api_key}"},
    )
