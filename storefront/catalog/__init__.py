"""Product Catalog.

Provides the SQLite schema, the dynamic query builder, the read
repository and the atomic synchronization pipeline.
"""

from storefront.catalog.query_builder import CatalogQuery, build_catalog_query, build_related_query
from storefront.catalog.repository import CatalogRepository
from storefront.catalog.sync import CatalogSynchronizer, ProductSource, SyncResult

__all__ = [
    # Query builder
    "CatalogQuery",
    "build_catalog_query",
    "build_related_query",
    # Repository
    "CatalogRepository",
    # Synchronization
    "CatalogSynchronizer",
    "ProductSource",
    "SyncResult",
]
