"""Shared fixtures for API tests.

The database is seeded on its own event loop before the application
starts; the application then opens the same file through its lifespan.
"""

import asyncio
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

from storefront.catalog.sync import CatalogSynchronizer
from storefront.domain.supported_categories import (
    SupportedCategories,
    SupportedCategory,
    SupportedFilters,
)
from storefront.domain.value_objects import ProductSpecifications, Range
from storefront.infrastructure.database import create_store
from storefront.main import create_app


@pytest.fixture
def catalog_products(make_product: Any) -> list[Any]:
    """Products behind the API."""
    mobility = ("mobility", "Mobility")
    return [
        make_product(
            "p10",
            price="10.00",
            vendor="Acme",
            colors=["Red", "Blue"],
            categories=[mobility],
            specifications=ProductSpecifications(max_speed="4", wheels="3"),
        ),
        make_product(
            "p20",
            price="20.00",
            list_price="25.00",
            vendor="Pride",
            colors=["Green"],
            categories=[mobility, ("travel", "Travel")],
            specifications=ProductSpecifications(max_speed="6", wheels="4"),
        ),
        make_product(
            "p30",
            price="30.00",
            vendor="Acme",
            colors=["Blue"],
            categories=[mobility],
            specifications=ProductSpecifications(max_speed="8", wheels="4"),
        ),
        make_product("loose", price="5.00", vendor="Golden", categories=[]),
    ]


@pytest.fixture
def supported_categories() -> SupportedCategories:
    """Navigation configuration behind the API."""
    return SupportedCategories(
        [
            SupportedCategory(
                id="mobility",
                title="Mobility",
                supported_filters=SupportedFilters(
                    price=(Range(to="15"), Range(from_="15")), vendor=True
                ),
                subcategories=(
                    SupportedCategory(
                        id="travel",
                        title="Travel",
                        supported_filters=SupportedFilters(wheels=("3",), color=True),
                    ),
                ),
            ),
        ]
    )


@pytest.fixture
def database_url(tmp_path: Path, make_source: Any, catalog_products: list[Any]) -> str:
    """A database file seeded with the catalog products."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'api.sqlite'}"

    async def seed() -> None:
        store = create_store(url)
        await store.create_tables()
        await CatalogSynchronizer(store, make_source(catalog_products, {"p30": 0})).update_data()
        await store.dispose()

    asyncio.run(seed())
    return url


@pytest.fixture
def client(
    database_url: str,
    supported_categories: SupportedCategories,
) -> Iterator[TestClient]:
    """Test client with the application lifespan running."""
    app = create_app(database_url=database_url, supported_categories=supported_categories)
    with TestClient(app) as test_client:
        yield test_client
