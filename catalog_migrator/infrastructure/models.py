"""SQLAlchemy models for the local catalog store.

Defines categories, products, category assignments, images and attributes.
Natural keys (category slug, product slug, product SKU) carry unique
constraints; the migration pipeline probes them before writing.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from catalog_migrator.infrastructure.database import Base


def _new_id() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Category(Base):
    """Local catalog category.

    Attributes:
        id: Store-assigned identifier.
        name: Display name.
        slug: URL slug (unique).
        description: Category description.
        parent_id: Parent category, if any. The pipeline only sets this to
            a category that has already been persisted.
        is_active: Whether the category is visible.
    """

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    parent_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Category(id={self.id}, slug={self.slug})>"


class Product(Base):
    """Local catalog product.

    Attributes:
        id: Store-assigned identifier.
        name: Product name.
        slug: URL slug (globally unique).
        sku: Stock Keeping Unit (globally unique).
        description: Long description (HTML from the source is kept as-is).
        short_description: Short description.
        price: Current price.
        original_price: "Was" price, set only for products on sale.
        stock_quantity: Units in stock.
        is_active: Whether the product is published.
        is_featured: Whether the product is featured.
        weight: Weight, if known.
        dimensions: "LxWxH" string, if known.
    """

    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(500), nullable=False)
    slug: Mapped[str] = mapped_column(String(500), nullable=False, unique=True)
    sku: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    short_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    original_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    weight: Mapped[Decimal | None] = mapped_column(Numeric(10, 3), nullable=True)
    dimensions: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, sku={self.sku}, slug={self.slug})>"


class ProductCategory(Base):
    """Assignment of a product to a category.

    Exactly one assignment per product is primary.
    """

    __tablename__ = "product_categories"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    category_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class ProductImage(Base):
    """Product image record.

    ``url`` is either a local public path (``/images/products/...``) or, when
    the download failed, the original remote URL.
    """

    __tablename__ = "product_images"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    url: Mapped[str] = mapped_column(String(1000), nullable=False)
    alt: Mapped[str | None] = mapped_column(String(500), nullable=True)
    caption: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    size: Mapped[int | None] = mapped_column(Integer, nullable=True)
    format: Mapped[str | None] = mapped_column(String(20), nullable=True)

    @property
    def is_local(self) -> bool:
        """Whether the image points at the local asset library."""
        return self.url.startswith("/")


class Attribute(Base):
    """Attribute definition, shared store-wide and unique by name."""

    __tablename__ = "attributes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    slug: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False, default="SELECT")
    options: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON list


class ProductAttribute(Base):
    """Attribute value stored for a product."""

    __tablename__ = "product_attributes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attribute_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("attributes.id", ondelete="RESTRICT"),
        nullable=False,
    )
    value: Mapped[str] = mapped_column(String(500), nullable=False)
