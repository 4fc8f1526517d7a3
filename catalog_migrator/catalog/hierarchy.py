"""Category hierarchy ordering.

Orders remote categories so that every parent is persisted before its
children, which lets the importer resolve ``parent_id`` from categories that
already exist locally.
"""

import structlog

from catalog_migrator.catalog.source_models import RemoteCategory

logger = structlog.get_logger()


class CategoryHierarchyResolver:
    """Topological ordering over the remote category parent references.

    Roots come first; then repeated passes move in every category whose
    parent is already placed. Categories that can never be placed (their
    parent is missing from the input, or they form a cycle) are appended
    in input order once a pass makes no progress.
    """

    def order(self, categories: list[RemoteCategory]) -> list[RemoteCategory]:
        """Order categories parent-first.

        Args:
            categories: Remote categories in any order.

        Returns:
            Every input category exactly once, parents before children
            wherever the parent is resolvable.
        """
        ordered = [c for c in categories if c.is_root]
        placed = {c.id for c in ordered}
        remaining = [c for c in categories if not c.is_root]

        while remaining:
            still_remaining = []
            for category in remaining:
                if category.parent_id in placed:
                    ordered.append(category)
                    placed.add(category.id)
                else:
                    still_remaining.append(category)

            if len(still_remaining) == len(remaining):
                logger.warning(
                    "Unresolvable category parents",
                    categories=[c.name for c in still_remaining],
                    parent_ids=sorted({c.parent_id for c in still_remaining}),
                )
                ordered.extend(still_remaining)
                break

            remaining = still_remaining

        return ordered
