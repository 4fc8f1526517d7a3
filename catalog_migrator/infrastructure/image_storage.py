"""Image asset storage.

The image pipeline stores downloaded files through ``ImageStorage``. Paths
are relative to the asset library root; ``public_url`` turns them into the
path under which the store serves images to end users.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from catalog_migrator.infrastructure.config import settings

logger = structlog.get_logger()


@dataclass
class StorageStats:
    """Summary of the local image library.

    Attributes:
        total_images: Number of stored files.
        total_size: Total size in bytes.
        buckets: Top-level bucket folders present.
    """

    total_images: int = 0
    total_size: int = 0
    buckets: list[str] = field(default_factory=list)


class ImageStorage(ABC):
    """Storage interface consumed by the image pipeline."""

    @abstractmethod
    async def ensure_directory(self, path: str) -> None:
        """Create a directory (and parents) if missing."""

    @abstractmethod
    async def write_file(self, path: str, data: bytes) -> None:
        """Write bytes to a file, replacing any existing content."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Check whether a file or directory exists."""

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Get the public URL path of a stored file."""

    @abstractmethod
    async def stats(self) -> StorageStats:
        """Summarize stored images."""


class LocalImageStorage(ImageStorage):
    """Image storage on the local filesystem.

    Files live under ``{root}/{public_prefix}`` and are served at
    ``/{public_prefix}/...``.
    """

    def __init__(self, root: str | None = None, public_prefix: str | None = None) -> None:
        """Initialize local storage.

        Args:
            root: Directory served as the web root.
            public_prefix: Asset library path below the web root.
        """
        self.public_prefix = (public_prefix or settings.image_public_prefix).strip("/")
        self.base_dir = Path(root or settings.image_root) / self.public_prefix

    def _resolve(self, path: str) -> Path:
        return self.base_dir / path

    async def ensure_directory(self, path: str) -> None:
        directory = self._resolve(path)
        if not directory.exists():
            await asyncio.to_thread(directory.mkdir, parents=True, exist_ok=True)
            logger.debug("Created directory", path=str(directory))

    async def write_file(self, path: str, data: bytes) -> None:
        await asyncio.to_thread(self._resolve(path).write_bytes, data)

    async def exists(self, path: str) -> bool:
        return self._resolve(path).exists()

    def public_url(self, path: str) -> str:
        return f"/{self.public_prefix}/{path}"

    async def stats(self) -> StorageStats:
        return await asyncio.to_thread(self._collect_stats)

    def _collect_stats(self) -> StorageStats:
        stats = StorageStats()
        if not self.base_dir.is_dir():
            return stats

        stats.buckets = sorted(p.name for p in self.base_dir.iterdir() if p.is_dir())
        for file in self.base_dir.rglob("*"):
            if file.is_file():
                stats.total_images += 1
                stats.total_size += file.stat().st_size
        return stats
