"""Shared fixtures for catalog migrator tests."""

from collections.abc import Callable, Iterator

import httpx
import pytest

from catalog_migrator.application.migration_service import reset_migration_service
from catalog_migrator.assets.pipeline import ImageAssetPipeline
from catalog_migrator.catalog.repository import InMemoryCatalogRepository
from catalog_migrator.catalog.source_models import (
    RemoteAttribute,
    RemoteCategory,
    RemoteCategoryRef,
    RemoteImage,
    RemoteProduct,
)
from catalog_migrator.infrastructure.image_storage import LocalImageStorage

IMAGE_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-data"


@pytest.fixture(autouse=True)
def reset_service() -> Iterator[None]:
    """Drop the migration service singleton around every test."""
    reset_migration_service()
    yield
    reset_migration_service()


@pytest.fixture
def make_category() -> Callable[..., RemoteCategory]:
    """Factory for remote categories."""

    def factory(
        id: int,
        name: str,
        parent_id: int = 0,
        slug: str | None = None,
    ) -> RemoteCategory:
        return RemoteCategory(
            id=id,
            name=name,
            slug=slug if slug is not None else name.lower().replace(" ", "-"),
            parent_id=parent_id,
        )

    return factory


@pytest.fixture
def make_product() -> Callable[..., RemoteProduct]:
    """Factory for remote products."""

    def factory(
        id: int,
        name: str,
        slug: str = "",
        sku: str = "",
        categories: list[RemoteCategory] | None = None,
        images: list[str] | None = None,
        attributes: dict[str, list[str]] | None = None,
        **fields,
    ) -> RemoteProduct:
        return RemoteProduct(
            id=id,
            name=name,
            slug=slug,
            sku=sku,
            categories=[
                RemoteCategoryRef(id=c.id, name=c.name, slug=c.slug)
                for c in categories or []
            ],
            images=[RemoteImage(src=src, name=f"image {i}") for i, src in enumerate(images or [])],
            attributes=[
                RemoteAttribute(name=name, options=options)
                for name, options in (attributes or {}).items()
            ],
            **fields,
        )

    return factory


@pytest.fixture
def repository() -> InMemoryCatalogRepository:
    """Empty in-memory catalog repository."""
    return InMemoryCatalogRepository()


@pytest.fixture
def storage(tmp_path) -> LocalImageStorage:
    """Image storage rooted in a temporary directory."""
    return LocalImageStorage(root=str(tmp_path), public_prefix="images/products")


def image_server(request: httpx.Request) -> httpx.Response:
    """Fake image host: URLs containing 'missing' are 404, everything else is a JPEG."""
    if "missing" in request.url.path:
        return httpx.Response(404)
    if "empty" in request.url.path:
        return httpx.Response(200, content=b"")
    return httpx.Response(200, content=IMAGE_BYTES, headers={"content-type": "image/jpeg"})


@pytest.fixture
def pipeline(storage: LocalImageStorage) -> ImageAssetPipeline:
    """Image pipeline downloading from the fake image host without delays."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(image_server))
    return ImageAssetPipeline(storage, delay=0, client=client)
