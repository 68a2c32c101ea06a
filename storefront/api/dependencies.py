"""FastAPI dependencies.

The catalog store and category configuration are created once by the
application lifespan and kept on ``app.state``.
"""

from fastapi import Request

from storefront.catalog.repository import CatalogRepository
from storefront.domain.supported_categories import SupportedCategories
from storefront.infrastructure.database import CatalogStore


def get_store(request: Request) -> CatalogStore:
    """Get the application's catalog store."""
    return request.app.state.store


def get_repository(request: Request) -> CatalogRepository:
    """Get a catalog repository bound to the application's store."""
    return CatalogRepository(get_store(request))


def get_supported_categories(request: Request) -> SupportedCategories:
    """Get the loaded category configuration."""
    return request.app.state.supported_categories
