"""Source platform records.

Read-only views of WooCommerce categories and products as returned by the
REST API. Values are kept close to the wire format; defaults are applied
later by the importer's transform.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class RemoteCategory:
    """Category from the source platform.

    Attributes:
        id: Source-scoped category ID.
        name: Category name.
        slug: Category slug.
        parent_id: Parent category ID (0 = root).
        description: Category description.
        image_src: Category image URL, if any.
        count: Number of products in the category.
    """

    id: int
    name: str
    slug: str
    parent_id: int = 0
    description: str = ""
    image_src: str | None = None
    count: int = 0

    @property
    def is_root(self) -> bool:
        """Whether the category has no parent."""
        return self.parent_id == 0

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteCategory":
        """Create from source API response.

        Args:
            data: API response data.

        Returns:
            RemoteCategory instance.
        """
        image = data.get("image") or {}
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            slug=data.get("slug", ""),
            parent_id=data.get("parent") or 0,
            description=data.get("description") or "",
            image_src=image.get("src"),
            count=data.get("count") or 0,
        )


@dataclass
class RemoteCategoryRef:
    """Category reference embedded in a product."""

    id: int
    name: str
    slug: str

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteCategoryRef":
        """Create from API response data."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            slug=data.get("slug", ""),
        )


@dataclass
class RemoteImage:
    """Image attached to a product."""

    src: str
    name: str = ""
    alt: str = ""

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteImage":
        """Create from API response data."""
        return cls(
            src=data.get("src", ""),
            name=data.get("name") or "",
            alt=data.get("alt") or "",
        )


@dataclass
class RemoteAttribute:
    """Product attribute with its option list."""

    name: str
    options: list[str] = field(default_factory=list)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteAttribute":
        """Create from API response data."""
        return cls(
            name=data.get("name", ""),
            options=[str(option) for option in data.get("options") or []],
        )


@dataclass
class RemoteDimensions:
    """Product dimensions as strings, as delivered by the source."""

    length: str = ""
    width: str = ""
    height: str = ""

    @property
    def is_empty(self) -> bool:
        """Whether no dimension is set."""
        return not (self.length or self.width or self.height)


@dataclass
class RemoteProduct:
    """Product from the source platform.

    Price fields are strings because the source sends them that way
    (an empty string means "not set").
    """

    id: int
    name: str
    slug: str = ""
    permalink: str = ""
    description: str = ""
    short_description: str = ""
    sku: str = ""
    price: str = ""
    regular_price: str = ""
    sale_price: str = ""
    stock_quantity: int | None = None
    stock_status: str = "instock"
    weight: str = ""
    dimensions: RemoteDimensions | None = None
    categories: list[RemoteCategoryRef] = field(default_factory=list)
    images: list[RemoteImage] = field(default_factory=list)
    attributes: list[RemoteAttribute] = field(default_factory=list)
    status: str = "publish"
    featured: bool = False

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteProduct":
        """Create from source API response.

        Args:
            data: API response data.

        Returns:
            RemoteProduct instance.
        """
        dimensions_data = data.get("dimensions")
        dimensions = None
        if dimensions_data:
            dimensions = RemoteDimensions(
                length=dimensions_data.get("length") or "",
                width=dimensions_data.get("width") or "",
                height=dimensions_data.get("height") or "",
            )

        return cls(
            id=data["id"],
            name=data.get("name", ""),
            slug=data.get("slug") or "",
            permalink=data.get("permalink") or "",
            description=data.get("description") or "",
            short_description=data.get("short_description") or "",
            sku=data.get("sku") or "",
            price=str(data.get("price") or ""),
            regular_price=str(data.get("regular_price") or ""),
            sale_price=str(data.get("sale_price") or ""),
            stock_quantity=data.get("stock_quantity"),
            stock_status=data.get("stock_status") or "instock",
            weight=str(data.get("weight") or ""),
            dimensions=dimensions,
            categories=[
                RemoteCategoryRef.from_api_response(c) for c in data.get("categories") or []
            ],
            images=[RemoteImage.from_api_response(i) for i in data.get("images") or []],
            attributes=[
                RemoteAttribute.from_api_response(a) for a in data.get("attributes") or []
            ],
            status=data.get("status") or "publish",
            featured=bool(data.get("featured", False)),
        )
