"""Catalog repository.

The migration pipeline writes to the local catalog only through
``CatalogRepository``. Every write is its own unit of work: there is no
transaction spanning several records, so a failed record never rolls back
the ones before it.
"""

import json
from abc import ABC, abstractmethod
from uuid import uuid4

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from catalog_migrator.catalog.keys import slugify
from catalog_migrator.infrastructure.models import (
    Attribute,
    Category,
    Product,
    ProductAttribute,
    ProductCategory,
    ProductImage,
)


class CatalogRepository(ABC):
    """Simple CRUD operations the pipeline needs from the catalog store."""

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_category_by_slug_or_name(self, slug: str, name: str) -> Category | None:
        """Find a category whose slug or name matches.

        Args:
            slug: Category slug.
            name: Category name.

        Returns:
            Matching category, or None.
        """

    @abstractmethod
    async def create_category(self, category: Category) -> Category:
        """Persist a new category.

        Args:
            category: Category to persist.

        Returns:
            Persisted category with its id assigned.
        """

    # ------------------------------------------------------------------
    # Products
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_product_by_slug_or_sku(self, slug: str | None, sku: str) -> Product | None:
        """Find a product whose slug or SKU matches.

        Args:
            slug: Product slug (None to match on SKU only).
            sku: Product SKU.

        Returns:
            Matching product, or None.
        """

    @abstractmethod
    async def product_slug_exists(self, slug: str) -> bool:
        """Check whether a product slug is taken."""

    @abstractmethod
    async def product_sku_exists(self, sku: str) -> bool:
        """Check whether a product SKU is taken."""

    @abstractmethod
    async def create_product(self, product: Product) -> Product:
        """Persist a new product.

        Args:
            product: Product to persist.

        Returns:
            Persisted product with its id assigned.
        """

    @abstractmethod
    async def create_category_assignment(
        self,
        product_id: str,
        category_id: str,
        is_primary: bool,
        sort_order: int,
    ) -> ProductCategory:
        """Assign a product to a category."""

    @abstractmethod
    async def create_image_record(self, image: ProductImage) -> ProductImage:
        """Persist a product image record."""

    # ------------------------------------------------------------------
    # Attributes
    # ------------------------------------------------------------------

    @abstractmethod
    async def find_or_create_attribute(self, name: str, options: list[str]) -> Attribute:
        """Get the attribute definition with this name, creating it if absent.

        Args:
            name: Attribute name (unique store-wide).
            options: Option list stored on creation.

        Returns:
            Existing or newly created attribute.
        """

    @abstractmethod
    async def create_attribute_value(
        self, product_id: str, attribute_id: str, value: str
    ) -> ProductAttribute:
        """Store an attribute value for a product."""

    # ------------------------------------------------------------------
    # Validation counts
    # ------------------------------------------------------------------

    @abstractmethod
    async def count_categories(self) -> int:
        """Count persisted categories."""

    @abstractmethod
    async def count_products(self) -> int:
        """Count persisted products."""

    @abstractmethod
    async def count_images(self) -> int:
        """Count persisted image records."""


def _new_attribute(name: str, options: list[str]) -> Attribute:
    return Attribute(
        id=str(uuid4()),
        name=name,
        slug=slugify(name),
        type="SELECT",
        options=json.dumps(options),
    )


# ============================================================================
# SQLAlchemy implementation
# ============================================================================


class SqlAlchemyCatalogRepository(CatalogRepository):
    """Catalog repository backed by the async SQLAlchemy store.

    Opens a short-lived session per call and commits each write on its own.

    Example usage:
        repo = SqlAlchemyCatalogRepository(get_session_factory())
        category = await repo.find_category_by_slug_or_name("bats", "Bats")
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Initialize repository with a session factory.

        Args:
            session_factory: Factory producing AsyncSession instances.
        """
        self.session_factory = session_factory

    async def _add(self, instance):
        async with self.session_factory() as session:
            session.add(instance)
            await session.commit()
        return instance

    async def _scalar(self, query):
        async with self.session_factory() as session:
            result = await session.execute(query)
            return result.scalars().first()

    async def find_category_by_slug_or_name(self, slug: str, name: str) -> Category | None:
        query = select(Category).where(or_(Category.slug == slug, Category.name == name))
        return await self._scalar(query)

    async def create_category(self, category: Category) -> Category:
        return await self._add(category)

    async def find_product_by_slug_or_sku(self, slug: str | None, sku: str) -> Product | None:
        condition = Product.sku == sku
        if slug:
            condition = or_(Product.slug == slug, condition)
        return await self._scalar(select(Product).where(condition))

    async def product_slug_exists(self, slug: str) -> bool:
        return await self._scalar(select(Product.id).where(Product.slug == slug)) is not None

    async def product_sku_exists(self, sku: str) -> bool:
        return await self._scalar(select(Product.id).where(Product.sku == sku)) is not None

    async def create_product(self, product: Product) -> Product:
        return await self._add(product)

    async def create_category_assignment(
        self,
        product_id: str,
        category_id: str,
        is_primary: bool,
        sort_order: int,
    ) -> ProductCategory:
        return await self._add(
            ProductCategory(
                id=str(uuid4()),
                product_id=product_id,
                category_id=category_id,
                is_primary=is_primary,
                sort_order=sort_order,
            )
        )

    async def create_image_record(self, image: ProductImage) -> ProductImage:
        return await self._add(image)

    async def find_or_create_attribute(self, name: str, options: list[str]) -> Attribute:
        existing = await self._scalar(select(Attribute).where(Attribute.name == name))
        if existing is not None:
            return existing
        return await self._add(_new_attribute(name, options))

    async def create_attribute_value(
        self, product_id: str, attribute_id: str, value: str
    ) -> ProductAttribute:
        return await self._add(
            ProductAttribute(
                id=str(uuid4()),
                product_id=product_id,
                attribute_id=attribute_id,
                value=value,
            )
        )

    async def _count(self, model) -> int:
        async with self.session_factory() as session:
            result = await session.execute(select(func.count()).select_from(model))
            return result.scalar() or 0

    async def count_categories(self) -> int:
        return await self._count(Category)

    async def count_products(self) -> int:
        return await self._count(Product)

    async def count_images(self) -> int:
        return await self._count(ProductImage)


# ============================================================================
# In-memory implementation
# ============================================================================


class InMemoryCatalogRepository(CatalogRepository):
    """Catalog repository kept in process memory.

    Used for dry runs (``catalog_store=memory``) and tests. Enforces the same
    unique natural keys as the SQL schema.
    """

    def __init__(self) -> None:
        """Initialize empty store."""
        self.categories: list[Category] = []
        self.products: list[Product] = []
        self.assignments: list[ProductCategory] = []
        self.images: list[ProductImage] = []
        self.attributes: list[Attribute] = []
        self.attribute_values: list[ProductAttribute] = []

    @staticmethod
    def _assign_id(instance) -> None:
        if instance.id is None:
            instance.id = str(uuid4())

    async def find_category_by_slug_or_name(self, slug: str, name: str) -> Category | None:
        for category in self.categories:
            if category.slug == slug or category.name == name:
                return category
        return None

    async def create_category(self, category: Category) -> Category:
        if any(c.slug == category.slug for c in self.categories):
            raise ValueError(f"Duplicate category slug: {category.slug}")
        self._assign_id(category)
        self.categories.append(category)
        return category

    async def find_product_by_slug_or_sku(self, slug: str | None, sku: str) -> Product | None:
        for product in self.products:
            if (slug and product.slug == slug) or product.sku == sku:
                return product
        return None

    async def product_slug_exists(self, slug: str) -> bool:
        return any(p.slug == slug for p in self.products)

    async def product_sku_exists(self, sku: str) -> bool:
        return any(p.sku == sku for p in self.products)

    async def create_product(self, product: Product) -> Product:
        if await self.product_slug_exists(product.slug):
            raise ValueError(f"Duplicate product slug: {product.slug}")
        if await self.product_sku_exists(product.sku):
            raise ValueError(f"Duplicate product SKU: {product.sku}")
        self._assign_id(product)
        self.products.append(product)
        return product

    async def create_category_assignment(
        self,
        product_id: str,
        category_id: str,
        is_primary: bool,
        sort_order: int,
    ) -> ProductCategory:
        assignment = ProductCategory(
            id=str(uuid4()),
            product_id=product_id,
            category_id=category_id,
            is_primary=is_primary,
            sort_order=sort_order,
        )
        self.assignments.append(assignment)
        return assignment

    async def create_image_record(self, image: ProductImage) -> ProductImage:
        self._assign_id(image)
        self.images.append(image)
        return image

    async def find_or_create_attribute(self, name: str, options: list[str]) -> Attribute:
        for attribute in self.attributes:
            if attribute.name == name:
                return attribute
        attribute = _new_attribute(name, options)
        self.attributes.append(attribute)
        return attribute

    async def create_attribute_value(
        self, product_id: str, attribute_id: str, value: str
    ) -> ProductAttribute:
        attribute_value = ProductAttribute(
            id=str(uuid4()),
            product_id=product_id,
            attribute_id=attribute_id,
            value=value,
        )
        self.attribute_values.append(attribute_value)
        return attribute_value

    async def count_categories(self) -> int:
        return len(self.categories)

    async def count_products(self) -> int:
        return len(self.products)

    async def count_images(self) -> int:
        return len(self.images)
