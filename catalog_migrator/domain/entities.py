"""Migration run entities.

Progress and result records exchanged between the orchestrator, the
trigger service and the HTTP layer.
"""

from dataclasses import asdict, dataclass, field
from typing import Any

from catalog_migrator.domain.state_machines import MigrationStep


@dataclass
class ImageProgress:
    """Image download progress for the product currently being imported.

    Attributes:
        current_product: Name of the product whose images are processed.
        current_image: 1-based index of the image being processed.
        total_images: Number of images on the product.
        status: Human-readable status of the current image.
        local_path: Local path of the last downloaded image, if any.
    """

    current_product: str
    current_image: int
    total_images: int
    status: str
    local_path: str | None = None


@dataclass
class MigrationProgress:
    """Progress of the current (or last) migration run.

    Single mutable record owned by the orchestrator. Readers get deep
    copies; ``errors`` is append-only for the lifetime of a run.
    """

    step: MigrationStep = MigrationStep.IDLE
    current: int = 0
    total: int = 0
    message: str = "Ready to start migration"
    errors: list[str] = field(default_factory=list)
    image_progress: ImageProgress | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        data = asdict(self)
        data["step"] = self.step.value
        return data


@dataclass
class MigrationStats:
    """Counters reported at the end of a run."""

    categories_imported: int = 0
    products_imported: int = 0
    products_skipped: int = 0
    images_processed: int = 0
    attributes_created: int = 0
    errors: int = 0


@dataclass
class ValidationReport:
    """Totals counted in the local store after the run."""

    categories: int = 0
    products: int = 0
    images: int = 0


@dataclass
class MigrationResult:
    """Summary of a migration run.

    ``success`` is False only for whole-phase failures (fetch failure,
    unexpected crash, cancellation). A successful run may still carry
    per-record errors; check ``stats.errors`` as well.
    """

    success: bool
    message: str
    stats: MigrationStats = field(default_factory=MigrationStats)
    errors: list[str] = field(default_factory=list)
    validation: ValidationReport | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return asdict(self)
