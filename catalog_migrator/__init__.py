"""Catalog migrator.

One-shot import of a WooCommerce catalog (categories, products, attributes
and images) into the local catalog store.
"""

__version__ = "0.1.0"
