"""Tests for the command-line entry point."""

import pytest

from catalog_migrator.application.migration_service import MigrationService
from catalog_migrator.catalog.source_models import RemoteCategory, RemoteProduct
from catalog_migrator.cli import _main, build_parser, main, run_migration, run_test
from catalog_migrator.infrastructure.config import settings
from catalog_migrator.infrastructure.source_client import ConnectionTestResult, SourceConfig

CONFIG = SourceConfig(
    site_url="https://shop.example.com",
    consumer_key="ck_test",
    consumer_secret="cs_test",
)


class StaticSourceClient:
    """Source client stand-in with a one-product catalog."""

    def __init__(self, config: SourceConfig) -> None:
        self.config = config

    async def fetch_all_categories(self) -> list[RemoteCategory]:
        return [RemoteCategory(id=1, name="Bats", slug="bats")]

    async def fetch_all_products(self, product_filter=None) -> list[RemoteProduct]:
        return [RemoteProduct(id=10, name="SG Test Bat")]

    async def test_connection(self) -> ConnectionTestResult:
        return ConnectionTestResult(
            success=True,
            message="WooCommerce API connection successful!",
            site_info={"site_name": "Cricket Shop"},
        )

    async def count_products(self) -> int:
        return 1

    async def close(self) -> None:
        pass


class TestParser:
    """Tests for argument parsing."""

    def test_run_defaults(self) -> None:
        """run defaults to the whole catalog against the database."""
        args = build_parser().parse_args(["run"])

        assert args.command == "run"
        assert args.scope == "all"
        assert args.dry_run is False
        assert args.site_url is None

    def test_run_options(self) -> None:
        """Scope, dry run and credentials are parsed."""
        args = build_parser().parse_args(
            [
                "run",
                "--scope",
                "wicket keeping",
                "--dry-run",
                "--site-url",
                "https://shop.example.com",
            ]
        )

        assert args.scope == "wicket keeping"
        assert args.dry_run is True
        assert args.site_url == "https://shop.example.com"

    def test_command_required(self) -> None:
        """A subcommand is required."""
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_serve_defaults(self) -> None:
        """serve binds to the configured host and port."""
        args = build_parser().parse_args(["serve"])

        assert args.command == "serve"
        assert args.host == settings.api_host
        assert args.port == settings.api_port

    def test_serve_runs_uvicorn(self, monkeypatch) -> None:
        """serve hands the application to uvicorn."""
        calls = []
        monkeypatch.setattr(
            "catalog_migrator.cli.uvicorn.run",
            lambda app, **kwargs: calls.append((app, kwargs)),
        )

        assert main(["serve", "--port", "9100"]) == 0
        assert calls == [("catalog_migrator.main:app", {"host": settings.api_host, "port": 9100})]


class TestCommands:
    """Tests for command runners."""

    @pytest.mark.asyncio
    async def test_run_migration(self, repository, storage, capsys) -> None:
        """A dry run prints the summary and exits 0."""
        service = MigrationService(
            repository=repository, storage=storage, client_factory=StaticSourceClient
        )

        exit_code = await run_migration(service, CONFIG, "all")

        assert exit_code == 0
        output = capsys.readouterr().out
        assert "Imported 1 categories and 1 products." in output
        assert "Products imported:   1" in output
        assert len(repository.products) == 1

    @pytest.mark.asyncio
    async def test_run_test(self, repository, storage, capsys) -> None:
        """The connection test prints site info and counts."""
        service = MigrationService(
            repository=repository, storage=storage, client_factory=StaticSourceClient
        )

        exit_code = await run_test(service, CONFIG)

        assert exit_code == 0
        output = capsys.readouterr().out
        assert "✓ WooCommerce API connection successful!" in output
        assert "site_name: Cricket Shop" in output
        assert "Categories: 1" in output

    @pytest.mark.asyncio
    async def test_missing_credentials(self, monkeypatch, capsys) -> None:
        """Missing credentials exit with status 2 before anything runs."""
        monkeypatch.setattr(settings, "woocommerce_site_url", "")
        monkeypatch.setattr(settings, "woocommerce_consumer_key", "")
        monkeypatch.setattr(settings, "woocommerce_consumer_secret", "")

        exit_code = await _main(build_parser().parse_args(["run", "--dry-run"]))

        assert exit_code == 2
        assert "Missing required fields: site_url" in capsys.readouterr().err
