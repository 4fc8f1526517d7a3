"""Command-line entry point.

Usage:
    catalog-migrator test --site-url https://shop.example.com
    catalog-migrator run --scope all
    catalog-migrator run --scope "wicket keeping" --dry-run
    catalog-migrator run --scope exclude-wk-balls
    catalog-migrator serve --port 8000
"""

import argparse
import asyncio
import sys

import uvicorn

from catalog_migrator.application.migration_service import SCOPE_ALL, MigrationService
from catalog_migrator.catalog.repository import InMemoryCatalogRepository
from catalog_migrator.domain.entities import MigrationResult
from catalog_migrator.domain.exceptions import SourceNotConfiguredError
from catalog_migrator.infrastructure.config import settings
from catalog_migrator.infrastructure.database import create_tables
from catalog_migrator.infrastructure.logging import configure_logging
from catalog_migrator.infrastructure.source_client import SourceConfig


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="catalog-migrator",
        description="Import a WooCommerce catalog into the local catalog store",
    )
    parser.add_argument(
        "--log-level",
        default=settings.log_level,
        help=f"Log level (default: {settings.log_level})",
    )

    source = argparse.ArgumentParser(add_help=False)
    source.add_argument("--site-url", help="Store URL (default: WOOCOMMERCE_SITE_URL)")
    source.add_argument("--consumer-key", help="API key (default: WOOCOMMERCE_CONSUMER_KEY)")
    source.add_argument(
        "--consumer-secret", help="API secret (default: WOOCOMMERCE_CONSUMER_SECRET)"
    )

    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser("test", parents=[source], help="Test the source connection")

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument(
        "--host", default=settings.api_host, help=f"Bind address (default: {settings.api_host})"
    )
    serve.add_argument(
        "--port", type=int, default=settings.api_port, help=f"Port (default: {settings.api_port})"
    )

    run = commands.add_parser("run", parents=[source], help="Run a migration")
    run.add_argument(
        "--scope",
        default=SCOPE_ALL,
        help="'all', 'exclude-wk-balls' or a category keyword (default: all)",
    )
    run.add_argument(
        "--dry-run",
        action="store_true",
        help="Import into an in-memory store instead of the database",
    )
    return parser


def print_result(result: MigrationResult) -> None:
    """Print a migration summary."""
    print("=" * 60)
    print(result.message)
    print("=" * 60)
    print(f"  Categories imported: {result.stats.categories_imported}")
    print(f"  Products imported:   {result.stats.products_imported}")
    print(f"  Products skipped:    {result.stats.products_skipped}")
    print(f"  Images processed:    {result.stats.images_processed}")
    print(f"  Attributes created:  {result.stats.attributes_created}")
    print(f"  Errors:              {result.stats.errors}")
    if result.validation is not None:
        print()
        print("Catalog totals:")
        print(f"  Categories: {result.validation.categories}")
        print(f"  Products:   {result.validation.products}")
        print(f"  Images:     {result.validation.images}")
    for error in result.errors:
        print(f"  ✗ {error}")


async def run_test(service: MigrationService, source_config: SourceConfig) -> int:
    """Test the connection and print catalog counts."""
    check = await service.test_connection(source_config)
    if not check.success:
        print(f"✗ {check.message}")
        return 1

    print(f"✓ {check.message}")
    for key, value in check.site_info.items():
        print(f"  {key}: {value}")
    print(f"  Products:   {check.total_products}")
    print(f"  Categories: {check.total_categories}")
    return 0


async def run_migration(
    service: MigrationService,
    source_config: SourceConfig,
    scope: str,
) -> int:
    """Run a migration to completion and print its summary."""
    service.start(source_config, scope)
    result = await service.wait()
    if result is None:
        return 1
    print_result(result)
    return 0 if result.success else 1


async def _main(args: argparse.Namespace) -> int:
    try:
        source_config = SourceConfig.resolve(
            site_url=args.site_url,
            consumer_key=args.consumer_key,
            consumer_secret=args.consumer_secret,
        )
    except SourceNotConfiguredError as e:
        print(f"✗ {e.message}", file=sys.stderr)
        return 2

    if args.command == "test":
        return await run_test(MigrationService(repository=InMemoryCatalogRepository()), source_config)

    if args.dry_run:
        service = MigrationService(repository=InMemoryCatalogRepository())
    else:
        await create_tables()
        service = MigrationService()
    return await run_migration(service, source_config, args.scope)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    if args.command == "serve":
        uvicorn.run("catalog_migrator.main:app", host=args.host, port=args.port)
        return 0

    configure_logging(args.log_level, json_logs=False)
    return asyncio.run(_main(args))


if __name__ == "__main__":
    sys.exit(main())
