"""Catalog import.

Source records, keyword filters, hierarchy ordering, natural key helpers
and the catalog repository. The product importer lives in
``catalog_migrator.catalog.importer``.
"""

from catalog_migrator.catalog.hierarchy import CategoryHierarchyResolver
from catalog_migrator.catalog.keys import first_available, slugify
from catalog_migrator.catalog.repository import (
    CatalogRepository,
    InMemoryCatalogRepository,
    SqlAlchemyCatalogRepository,
)
from catalog_migrator.catalog.source_models import RemoteCategory, RemoteProduct

__all__ = [
    # Source records
    "RemoteCategory",
    "RemoteProduct",
    # Hierarchy
    "CategoryHierarchyResolver",
    # Keys
    "first_available",
    "slugify",
    # Repository
    "CatalogRepository",
    "InMemoryCatalogRepository",
    "SqlAlchemyCatalogRepository",
]
