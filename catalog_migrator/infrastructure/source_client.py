"""Source platform HTTP client.

Paginated client for the WooCommerce REST API (v3). Pages are requested
until one comes back empty or shorter than the page size; no total-count
header is relied upon. The client never retries: a failed page raises
``SourceFetchError`` and the caller decides what to do with the fetch.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog
from pydantic import BaseModel

from catalog_migrator.catalog.filters import ExclusionProfile, get_keyword_profile, select_categories
from catalog_migrator.catalog.source_models import RemoteCategory, RemoteProduct
from catalog_migrator.domain.exceptions import SourceFetchError, SourceNotConfiguredError
from catalog_migrator.infrastructure.config import settings

logger = structlog.get_logger()


# ============================================================================
# Source Configuration
# ============================================================================


class SourceConfig(BaseModel):
    """Connection settings for a WooCommerce store."""

    site_url: str
    consumer_key: str
    consumer_secret: str

    @property
    def api_base_url(self) -> str:
        """Base URL of the REST API."""
        return f"{self.site_url.rstrip('/')}/wp-json/wc/v3"

    @classmethod
    def resolve(
        cls,
        site_url: str | None = None,
        consumer_key: str | None = None,
        consumer_secret: str | None = None,
    ) -> "SourceConfig":
        """Build a config, falling back to environment settings per field.

        Raises:
            SourceNotConfiguredError: If a field is missing in both places.
        """
        values = {
            "site_url": site_url or settings.woocommerce_site_url,
            "consumer_key": consumer_key or settings.woocommerce_consumer_key,
            "consumer_secret": consumer_secret or settings.woocommerce_consumer_secret,
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise SourceNotConfiguredError(missing)
        return cls(**values)


@dataclass
class ProductFilter:
    """Server-side and client-side product filter.

    Attributes:
        category_id: Only products in this remote category.
        search: Source-side keyword search.
        exclusion: Exclusion profile applied after fetching.
    """

    category_id: int | None = None
    search: str | None = None
    exclusion: ExclusionProfile | None = None


@dataclass
class ConnectionTestResult:
    """Result of a connectivity check against the source."""

    success: bool
    message: str
    site_info: dict[str, Any] = field(default_factory=dict)


# ============================================================================
# Source Client
# ============================================================================


class SourceClient:
    """HTTP client for a WooCommerce store.

    Example usage:
        async with SourceClient(config) as client:
            categories = await client.fetch_all_categories()
            products = await client.fetch_all_products()
    """

    def __init__(
        self,
        config: SourceConfig,
        page_size: int | None = None,
        timeout: float | None = None,
        request_delay: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize source client.

        Args:
            config: Store connection settings.
            page_size: Items requested per page.
            timeout: Request timeout in seconds.
            request_delay: Pause between page requests, in seconds.
            client: Pre-built HTTP client (its base URL must be the API base).
        """
        self.config = config
        self.page_size = page_size or settings.source_page_size
        self.timeout = timeout or settings.source_timeout
        self.request_delay = (
            settings.source_request_delay if request_delay is None else request_delay
        )
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_base_url,
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "SourceClient":
        """Context manager entry."""
        return self

    async def __aexit__(self, *args: object) -> None:
        """Context manager exit."""
        await self.close()

    async def _request(self, endpoint: str, params: dict[str, Any] | None = None) -> Any:
        """Perform an authenticated GET and decode the JSON body.

        Args:
            endpoint: Path relative to the API base.
            params: Extra query parameters.

        Returns:
            Decoded JSON body.

        Raises:
            SourceFetchError: On transport error or non-2xx response.
        """
        query: dict[str, Any] = {
            "consumer_key": self.config.consumer_key,
            "consumer_secret": self.config.consumer_secret,
        }
        query.update(params or {})

        logger.debug("Fetching from source", endpoint=endpoint, params=params)

        try:
            client = await self._get_client()
            response = await client.get(endpoint, params=query)
        except httpx.RequestError as e:
            logger.error(
                "Source API request failed",
                endpoint=endpoint,
                error=str(e),
            )
            raise SourceFetchError(
                f"Request failed: {str(e)}", endpoint=endpoint
            ) from e

        if not response.is_success:
            logger.error(
                "Source API error",
                endpoint=endpoint,
                status_code=response.status_code,
            )
            raise SourceFetchError(
                f"Source API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
                endpoint=endpoint,
            )

        try:
            return response.json()
        except ValueError as e:
            raise SourceFetchError(
                f"Invalid JSON from source: {str(e)}",
                status_code=response.status_code,
                endpoint=endpoint,
            ) from e

    async def _fetch_paginated(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        """Fetch every page of a listing endpoint.

        Args:
            endpoint: Listing endpoint.
            params: Filter parameters added to every page request.

        Returns:
            Raw items across all pages.
        """
        items: list[dict[str, Any]] = []
        page = 1

        while True:
            page_params = {"page": page, "per_page": self.page_size}
            page_params.update(params or {})

            logger.info("Fetching page", endpoint=endpoint, page=page)
            batch = await self._request(endpoint, page_params)

            if not batch:
                break

            items.extend(batch)

            if len(batch) < self.page_size:
                break

            page += 1
            if self.request_delay:
                await asyncio.sleep(self.request_delay)

        return items

    async def test_connection(self) -> ConnectionTestResult:
        """Check connectivity and read basic store information.

        Returns:
            ConnectionTestResult; failures are reported, not raised.
        """
        try:
            status = await self._request("/system_status")
        except SourceFetchError as e:
            return ConnectionTestResult(
                success=False,
                message=f"Connection failed: {e.message}",
            )
        if not isinstance(status, dict):
            logger.warning("Unexpected system status payload", type=type(status).__name__)
            return ConnectionTestResult(
                success=False,
                message="Connection failed: unexpected system status response",
            )

        environment = status.get("environment") or {}
        general = (status.get("settings") or {}).get("general") or {}
        return ConnectionTestResult(
            success=True,
            message="WooCommerce API connection successful!",
            site_info={
                "version": environment.get("wp_version"),
                "woo_version": environment.get("version"),
                "site_name": general.get("title"),
            },
        )

    async def fetch_all_categories(self) -> list[RemoteCategory]:
        """Fetch every product category, including empty ones.

        Returns:
            All remote categories.
        """
        raw = await self._fetch_paginated("/products/categories", {"hide_empty": "false"})
        categories = [RemoteCategory.from_api_response(c) for c in raw]
        logger.info("Fetched categories", count=len(categories))
        return categories

    async def fetch_all_products(
        self, product_filter: ProductFilter | None = None
    ) -> list[RemoteProduct]:
        """Fetch published products, optionally filtered.

        Args:
            product_filter: Category, search and exclusion filter.

        Returns:
            Matching remote products.
        """
        product_filter = product_filter or ProductFilter()
        params: dict[str, Any] = {"status": "publish"}
        if product_filter.category_id is not None:
            params["category"] = product_filter.category_id
        if product_filter.search:
            params["search"] = product_filter.search

        raw = await self._fetch_paginated("/products", params)
        products = [RemoteProduct.from_api_response(p) for p in raw]
        logger.info(
            "Fetched products",
            count=len(products),
            category_id=product_filter.category_id,
            search=product_filter.search,
        )

        if product_filter.exclusion is not None:
            products = product_filter.exclusion.apply(products)

        return products

    async def fetch_products_by_category_keyword(self, keyword: str) -> list[RemoteProduct]:
        """Fetch products of every category matching a keyword.

        Uses the exhaustive profile for the keyword when one is registered
        (synonym category lookup, then inclusion/exclusion rules on product
        names); otherwise broad name/slug containment.

        Args:
            keyword: Category keyword.

        Returns:
            Matching products. A product listed in several matching
            categories is returned once.
        """
        categories = await self.fetch_all_categories()
        targets = select_categories(categories, keyword)

        if not targets:
            logger.info("No categories matched keyword", keyword=keyword)
            return []

        logger.info(
            "Categories matched keyword",
            keyword=keyword,
            categories=[c.name for c in targets],
        )

        products: list[RemoteProduct] = []
        seen: set[int] = set()
        for category in targets:
            for product in await self.fetch_all_products(ProductFilter(category_id=category.id)):
                if product.id not in seen:
                    seen.add(product.id)
                    products.append(product)

        profile = get_keyword_profile(keyword)
        if profile is not None:
            products = profile.select(products)

        return products

    async def search_products(self, query: str) -> list[RemoteProduct]:
        """Search published products by keyword on the source side.

        Args:
            query: Search query.

        Returns:
            Matching products.
        """
        return await self.fetch_all_products(ProductFilter(search=query))

    async def fetch_product(self, product_id: int) -> RemoteProduct:
        """Fetch a single product with full details.

        Args:
            product_id: Remote product ID.

        Returns:
            The remote product.
        """
        data = await self._request(f"/products/{product_id}")
        return RemoteProduct.from_api_response(data)

    async def count_products(self) -> int:
        """Count published products by paging through them.

        Returns:
            Number of published products.
        """
        raw = await self._fetch_paginated("/products", {"status": "publish"})
        return len(raw)
