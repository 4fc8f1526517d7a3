"""Image asset pipeline.

Downloads product images into the local asset library. Each product gets a
folder derived from the bucket classifier; the primary image is named
``{slug}-main`` and the others ``{slug}-{n}``. A failed download never raises:
it yields an unsuccessful ``DownloadResult`` and the importer stores the
remote URL instead.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import PurePosixPath
from urllib.parse import urlparse

import httpx
import structlog

from catalog_migrator.assets.classifier import product_folder
from catalog_migrator.catalog.keys import first_available, slugify
from catalog_migrator.catalog.source_models import RemoteCategoryRef, RemoteImage
from catalog_migrator.domain.exceptions import ImageDownloadError
from catalog_migrator.infrastructure.config import settings
from catalog_migrator.infrastructure.image_storage import ImageStorage

logger = structlog.get_logger()

DEFAULT_EXTENSION = ".jpg"

CONTENT_TYPE_EXTENSIONS = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


@dataclass
class DownloadResult:
    """Outcome of downloading one image.

    Attributes:
        success: Whether the file was stored locally.
        local_path: Public path of the stored file ('' on failure).
        original_url: Remote image URL.
        error: Failure reason.
        size_bytes: Stored file size.
        format: File extension without the dot.
    """

    success: bool
    local_path: str
    original_url: str
    error: str | None = None
    size_bytes: int | None = None
    format: str | None = None


def image_extension(url: str, content_type: str | None) -> str:
    """Pick the file extension for a downloaded image.

    Args:
        url: Image URL; its path extension wins when present.
        content_type: Response content type.

    Returns:
        Extension including the leading dot.
    """
    suffix = PurePosixPath(urlparse(url).path).suffix.lower()
    if suffix:
        return suffix
    if content_type:
        mime = content_type.split(";")[0].strip().lower()
        return CONTENT_TYPE_EXTENSIONS.get(mime, DEFAULT_EXTENSION)
    return DEFAULT_EXTENSION


def image_basename(product_name: str, index: int) -> str:
    """Base filename (no extension) for the image at ``index``."""
    slug = slugify(product_name) or "product"
    return f"{slug}-main" if index == 0 else f"{slug}-{index + 1}"


ImageCallback = Callable[[int, int, DownloadResult], None]


class ImageAssetPipeline:
    """Sequential image downloader writing into an ``ImageStorage``.

    Example usage:
        pipeline = ImageAssetPipeline(LocalImageStorage())
        results = await pipeline.download_all(product.name, product.categories, product.images)
        await pipeline.close()
    """

    def __init__(
        self,
        storage: ImageStorage,
        delay: float | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize pipeline.

        Args:
            storage: Destination storage.
            delay: Pause between downloads of the same product, in seconds.
            timeout: Download timeout in seconds.
            client: Pre-built HTTP client.
        """
        self.storage = storage
        self.delay = settings.image_download_delay if delay is None else delay
        self.timeout = timeout or settings.image_download_timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def download_all(
        self,
        product_name: str,
        categories: list[RemoteCategoryRef],
        images: list[RemoteImage],
        on_image: ImageCallback | None = None,
    ) -> list[DownloadResult]:
        """Download every image of a product, in order.

        Args:
            product_name: Product name (drives folder and filenames).
            categories: Product categories, reported in logs.
            images: Remote images; the first one is the primary image.
            on_image: Called after each image with (index, total, result).

        Returns:
            One result per input image, in input order.

        Raises:
            OSError: If the product folder cannot be created.
        """
        if not images:
            logger.debug("No images to download", product=product_name)
            return []

        folder = product_folder(product_name)
        logger.info(
            "Downloading product images",
            product=product_name,
            count=len(images),
            folder=folder,
            categories=[c.name for c in categories],
        )
        await self.storage.ensure_directory(folder)

        results = []
        for index, image in enumerate(images):
            result = await self._download(image.src, folder, image_basename(product_name, index))
            results.append(result)
            if on_image is not None:
                on_image(index, len(images), result)

            if self.delay and index < len(images) - 1:
                await asyncio.sleep(self.delay)

        saved = [r for r in results if r.success]
        logger.info(
            "Product images downloaded",
            product=product_name,
            downloaded=len(saved),
            total=len(images),
            size_kb=round(sum(r.size_bytes or 0 for r in saved) / 1024),
        )
        return results

    async def _download(self, url: str, folder: str, basename: str) -> DownloadResult:
        """Download one image and store it under a free filename."""
        try:
            client = await self._get_client()
            response = await client.get(url)
            if not response.is_success:
                raise ImageDownloadError(
                    url, f"HTTP {response.status_code}: {response.reason_phrase}"
                )

            data = response.content
            if not data:
                raise ImageDownloadError(url, "Empty response body")

            extension = image_extension(url, response.headers.get("content-type"))
            path = await first_available(
                f"{folder}/{basename}", self.storage.exists, suffix=extension
            )
            await self.storage.write_file(path, data)
        except (httpx.HTTPError, httpx.InvalidURL, OSError, ImageDownloadError) as e:
            logger.warning("Image download failed", url=url, error=str(e))
            return DownloadResult(success=False, local_path="", original_url=url, error=str(e))

        local_path = self.storage.public_url(path)
        logger.debug("Image downloaded", url=url, local_path=local_path, size=len(data))
        return DownloadResult(
            success=True,
            local_path=local_path,
            original_url=url,
            size_bytes=len(data),
            format=extension.lstrip("."),
        )
