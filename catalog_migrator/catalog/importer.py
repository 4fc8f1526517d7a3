"""Product importer.

Turns remote categories and products into local catalog records. The
importer is additive: an existing category (same slug or name) or product
(same slug or SKU) is returned as-is and never updated.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

import structlog

from catalog_migrator.assets.pipeline import DownloadResult, ImageAssetPipeline
from catalog_migrator.catalog.keys import first_available, slugify
from catalog_migrator.catalog.repository import CatalogRepository
from catalog_migrator.catalog.source_models import RemoteCategory, RemoteProduct
from catalog_migrator.domain.exceptions import RecordImportError
from catalog_migrator.infrastructure.models import Category, Product, ProductImage

logger = structlog.get_logger()


# ============================================================================
# Transform
# ============================================================================


@dataclass
class ProductDraft:
    """Local product fields derived from a remote product.

    ``slug`` and ``sku`` are base values; the importer uniquifies them
    against the store before creating the product.
    """

    name: str
    slug: str
    sku: str
    description: str
    short_description: str
    price: Decimal
    original_price: Decimal | None
    stock_quantity: int
    is_active: bool
    is_featured: bool
    weight: Decimal | None
    dimensions: str | None

    def to_model(self, slug: str, sku: str) -> Product:
        """Build the ORM product with the final slug and SKU."""
        return Product(
            name=self.name,
            slug=slug,
            sku=sku,
            description=self.description,
            short_description=self.short_description,
            price=self.price,
            original_price=self.original_price,
            stock_quantity=self.stock_quantity,
            is_active=self.is_active,
            is_featured=self.is_featured,
            weight=self.weight,
            dimensions=self.dimensions,
        )


def parse_decimal(value: str) -> Decimal | None:
    """Parse a source number string; None when empty or not a finite number."""
    if not value or not value.strip():
        return None
    try:
        number = Decimal(value.strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


def base_sku(remote: RemoteProduct) -> str:
    """Remote SKU, or ``WC-{id}`` when the source has none."""
    return remote.sku or f"WC-{remote.id}"


def base_slug(remote: RemoteProduct) -> str:
    """Remote slug, or the slugified name when the source has none."""
    return remote.slug or slugify(remote.name)


def transform_product(remote: RemoteProduct) -> ProductDraft:
    """Map a remote product to local fields.

    Field rules:
        price: regular price if set, else list price, else 0 (unparsable is 0).
        original_price: regular price (or 0) only when a sale price is set.
        sku: remote SKU, else ``WC-{id}``.
        slug: remote slug, else slugified name.
        stock_quantity: remote value, else 0.
        is_active: status is ``publish``.
        weight: parsed weight, else None.
        dimensions: ``LxWxH``, None when all three are empty.

    Args:
        remote: Remote product.

    Returns:
        ProductDraft with base slug and SKU.

    Raises:
        RecordImportError: If the product has no name.
    """
    if not remote.name or not remote.name.strip():
        raise RecordImportError("product", f"#{remote.id}", "missing name")

    price = parse_decimal(remote.regular_price or remote.price) or Decimal("0")

    original_price = None
    if remote.sale_price:
        original_price = parse_decimal(remote.regular_price) or Decimal("0")

    dimensions = None
    if remote.dimensions is not None and not remote.dimensions.is_empty:
        d = remote.dimensions
        dimensions = f"{d.length}x{d.width}x{d.height}"

    return ProductDraft(
        name=remote.name,
        slug=base_slug(remote),
        sku=base_sku(remote),
        description=remote.description,
        short_description=remote.short_description,
        price=price,
        original_price=original_price,
        stock_quantity=remote.stock_quantity or 0,
        is_active=remote.status == "publish",
        is_featured=remote.featured,
        weight=parse_decimal(remote.weight),
        dimensions=dimensions,
    )


# ============================================================================
# Import results
# ============================================================================


@dataclass
class ProductImportResult:
    """Outcome of importing one product.

    Attributes:
        product: Created product, or the existing one when skipped.
        imported: False when the product was skipped as a duplicate.
        attributes_created: Attribute value rows written.
        errors: Non-fatal errors (attribute failures).
    """

    product: Product
    imported: bool
    attributes_created: int = 0
    errors: list[str] = field(default_factory=list)


@dataclass
class ImageImportResult:
    """Outcome of importing the images of one product.

    Attributes:
        saved: Image records written.
        local: Records pointing at the local library.
        fallback: Records pointing at the remote URL.
        errors: Non-fatal errors (download or record failures).
    """

    saved: int = 0
    local: int = 0
    fallback: int = 0
    errors: list[str] = field(default_factory=list)


ImageProgressCallback = Callable[[int, int, DownloadResult], None]


# ============================================================================
# Importer
# ============================================================================


class ProductImporter:
    """Writes remote records into the catalog repository."""

    def __init__(self, repository: CatalogRepository) -> None:
        """Initialize importer.

        Args:
            repository: Destination catalog repository.
        """
        self.repository = repository

    async def unique_slug(self, base: str) -> str:
        """First product slug not yet taken: base, base-1, base-2, ..."""
        return await first_available(base, self.repository.product_slug_exists)

    async def unique_sku(self, base: str) -> str:
        """First product SKU not yet taken: base, base-1, base-2, ..."""
        return await first_available(base, self.repository.product_sku_exists)

    async def import_category(
        self,
        remote: RemoteCategory,
        parent_lookup: Mapping[int, str],
    ) -> Category:
        """Import a category, or return the existing match.

        Args:
            remote: Remote category.
            parent_lookup: Remote category id to local category id.

        Returns:
            Created or existing local category.

        Raises:
            RecordImportError: If the category has neither name nor slug.
        """
        slug = remote.slug or slugify(remote.name)
        if not slug:
            raise RecordImportError("category", f"#{remote.id}", "missing name and slug")

        existing = await self.repository.find_category_by_slug_or_name(slug, remote.name)
        if existing is not None:
            logger.debug("Category already exists", slug=slug, category_id=existing.id)
            return existing

        parent_id = None if remote.is_root else parent_lookup.get(remote.parent_id)
        category = await self.repository.create_category(
            Category(
                name=remote.name,
                slug=slug,
                description=remote.description,
                parent_id=parent_id,
                is_active=True,
            )
        )
        logger.info(
            "Imported category",
            category_id=category.id,
            slug=slug,
            parent_id=parent_id,
        )
        return category

    async def import_product(
        self,
        remote: RemoteProduct,
        category_lookup: Mapping[int, str],
    ) -> ProductImportResult:
        """Import a product with its category assignments and attributes.

        Skips (imported=False) when a product with the remote slug or the
        base SKU already exists.

        Args:
            remote: Remote product.
            category_lookup: Remote category id to local category id.

        Returns:
            ProductImportResult.
        """
        draft = transform_product(remote)

        existing = await self.repository.find_product_by_slug_or_sku(remote.slug or None, draft.sku)
        if existing is not None:
            logger.info(
                "Skipping existing product",
                name=remote.name,
                product_id=existing.id,
            )
            return ProductImportResult(product=existing, imported=False)

        slug = await self.unique_slug(draft.slug)
        sku = await self.unique_sku(draft.sku)
        product = await self.repository.create_product(draft.to_model(slug, sku))
        logger.info("Imported product", product_id=product.id, slug=slug, sku=sku)

        await self._assign_categories(product, remote, category_lookup)
        result = ProductImportResult(product=product, imported=True)
        await self._import_attributes(product, remote, result)
        return result

    async def _assign_categories(
        self,
        product: Product,
        remote: RemoteProduct,
        category_lookup: Mapping[int, str],
    ) -> None:
        # The first mapped category is primary; sort_order keeps the remote position.
        primary_assigned = False
        for index, ref in enumerate(remote.categories):
            category_id = category_lookup.get(ref.id)
            if category_id is None:
                logger.debug("Unmapped product category", product=remote.name, category=ref.name)
                continue
            await self.repository.create_category_assignment(
                product_id=product.id,
                category_id=category_id,
                is_primary=not primary_assigned,
                sort_order=index,
            )
            primary_assigned = True

    async def _import_attributes(
        self,
        product: Product,
        remote: RemoteProduct,
        result: ProductImportResult,
    ) -> None:
        for attribute in remote.attributes:
            try:
                definition = await self.repository.find_or_create_attribute(
                    attribute.name, attribute.options
                )
                if attribute.options:
                    await self.repository.create_attribute_value(
                        product.id, definition.id, attribute.options[0]
                    )
                    result.attributes_created += 1
            except Exception as e:
                logger.warning(
                    "Attribute import failed",
                    product=remote.name,
                    attribute=attribute.name,
                    error=str(e),
                )
                result.errors.append(
                    f"Failed to import attribute {attribute.name} for product {remote.name}: {e}"
                )

    async def import_images(
        self,
        product: Product,
        remote: RemoteProduct,
        pipeline: ImageAssetPipeline,
        on_image: ImageProgressCallback | None = None,
    ) -> ImageImportResult:
        """Download and record the images of a product.

        Each image is stored with its local path, or with its remote URL when
        the download failed. If the pipeline fails as a whole, every image is
        stored with its remote URL. Images without a source URL are skipped
        and reported.

        Args:
            product: Local product.
            remote: Remote product.
            pipeline: Image pipeline.
            on_image: Progress callback per image (index, total, result).

        Returns:
            ImageImportResult.
        """
        result = ImageImportResult()
        images = [image for image in remote.images if image.src]
        skipped = len(remote.images) - len(images)
        if skipped:
            logger.warning("Images without source URL", product=remote.name, count=skipped)
            result.errors.append(
                f"Skipped {skipped} image(s) without a source URL for {remote.name}"
            )
        if not images:
            return result

        try:
            downloads = await pipeline.download_all(
                remote.name, remote.categories, images, on_image=on_image
            )
        except Exception as e:
            logger.error("Image processing failed", product=remote.name, error=str(e))
            downloads = [
                DownloadResult(success=False, local_path="", original_url=image.src)
                for image in images
            ]
            result.errors.append(
                f"Image processing failed for {remote.name}, used external URLs"
            )

        for index, (image, download) in enumerate(zip(images, downloads)):
            url = download.local_path if download.success else image.src
            try:
                await self.repository.create_image_record(
                    ProductImage(
                        product_id=product.id,
                        url=url,
                        alt=image.alt or remote.name,
                        caption=image.name,
                        is_primary=index == 0,
                        sort_order=index,
                        size=download.size_bytes,
                        format=download.format,
                    )
                )
            except Exception as e:
                logger.error("Image record failed", product=remote.name, url=url, error=str(e))
                result.errors.append(f"Database save failed for image: {image.src}")
                continue

            result.saved += 1
            if download.success:
                result.local += 1
            else:
                result.fallback += 1
                if download.error:
                    result.errors.append(
                        f"Image download failed for {remote.name}: {download.error}"
                    )

        return result
