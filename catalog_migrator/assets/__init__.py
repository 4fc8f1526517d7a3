"""Image asset library: bucket classification and download pipeline."""

from catalog_migrator.assets.classifier import Classification, classify_product
from catalog_migrator.assets.pipeline import DownloadResult, ImageAssetPipeline

__all__ = [
    "Classification",
    "classify_product",
    "DownloadResult",
    "ImageAssetPipeline",
]
