"""Shared fixtures for catalog tests.

Every test gets its own SQLite database file under ``tmp_path`` and a
retry policy that never actually sleeps.
"""

from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Mapping
from typing import Any

import pytest
import pytest_asyncio

from storefront.catalog.sync import CatalogSynchronizer, SyncResult
from storefront.domain.entities import Product, ProductVariant
from storefront.domain.value_objects import (
    ProductCategory,
    ProductColor,
    ProductImage,
    ProductOption,
    ProductSpecifications,
    ProductVendor,
    UsdPrice,
)
from storefront.infrastructure.database import CatalogStore, create_store
from storefront.infrastructure.retry import RetryPolicy

ProductFactory = Callable[..., Product]


async def no_sleep(delay: float) -> None:
    """Retry sleep that returns immediately."""
    return None


def build_product(
    product_id: str,
    price: str = "10.00",
    title: str | None = None,
    vendor: str = "Acme",
    colors: Iterable[str] = (),
    categories: Iterable[tuple[str, str]] | None = (("scooters", "Scooters"),),
    list_price: str | None = None,
    published_at_ms: int = 1_700_000_000_000,
    specifications: ProductSpecifications | None = None,
    images: list[ProductImage] | None = None,
    options: list[ProductOption] | None = None,
    variants: list[ProductVariant] | None = None,
) -> Product:
    """Build a valid product with sensible defaults."""
    return Product(
        id=product_id,
        sku=f"gid://shopify/Product/{product_id}",
        title=title if title is not None else f"Product {product_id}",
        vendor=ProductVendor(vendor),
        description_html=f"<p>{product_id}</p>",
        price=UsdPrice(price),
        list_price=UsdPrice(list_price) if list_price is not None else None,
        options=options if options is not None else [],
        variants=(
            variants
            if variants is not None
            else [ProductVariant(f"gid://shopify/ProductVariant/{product_id}", UsdPrice(price))]
        ),
        colors=[ProductColor(c) for c in colors],
        images=images if images is not None else [],
        specifications=specifications or ProductSpecifications(),
        categories=(
            [ProductCategory(id=cid, title=ctitle) for cid, ctitle in categories]
            if categories is not None
            else None
        ),
        published_at_ms=published_at_ms,
    )


async def iterate(products: Iterable[Product]) -> AsyncIterator[Product]:
    """Turn a list of products into an async stream."""
    for product in products:
        yield product


class ListSource:
    """In-memory upstream with a fixed product list and ranking."""

    def __init__(
        self,
        products: list[Product],
        sales_ranks: dict[str, int] | None = None,
    ) -> None:
        self.products = products
        self.sales_ranks = sales_ranks or {}

    def get_products(self) -> AsyncIterator[Product]:
        return iterate(self.products)

    async def get_sales_ranks(self) -> dict[str, int]:
        return dict(self.sales_ranks)


@pytest.fixture
def make_product() -> ProductFactory:
    """Factory for valid products."""
    return build_product


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Retry policy with the default schedule and no real sleeping."""
    return RetryPolicy(sleep=no_sleep)


@pytest_asyncio.fixture
async def store(tmp_path: Any, retry_policy: RetryPolicy) -> AsyncIterator[CatalogStore]:
    """Create an empty catalog database in a temporary directory."""
    catalog_store = create_store(
        f"sqlite+aiosqlite:///{tmp_path / 'catalog.sqlite'}",
        retry_policy=retry_policy,
    )
    await catalog_store.create_tables()
    yield catalog_store
    await catalog_store.dispose()


@pytest.fixture
def seed(
    store: CatalogStore,
) -> Callable[..., Awaitable[SyncResult]]:
    """Replace the catalog with the given products."""

    async def _seed(
        products: list[Product],
        sales_ranks: Mapping[str, int] | None = None,
    ) -> SyncResult:
        synchronizer = CatalogSynchronizer(store, ListSource(products))
        return await synchronizer.replace_data(iterate(products), sales_ranks or {})

    return _seed


@pytest.fixture
def make_source() -> Callable[..., ListSource]:
    """Factory for in-memory upstream sources."""
    return ListSource
