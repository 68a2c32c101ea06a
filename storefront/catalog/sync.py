"""Catalog synchronization.

Rebuilds the whole catalog cache from the upstream product source in a
single transaction. Readers keep seeing the previous snapshot until the
commit; a failure at any point rolls everything back.
"""

import asyncio
import json
import time
from collections.abc import AsyncIterable, AsyncIterator, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

import structlog
from sqlalchemy import delete, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.catalog.models import (
    MAX_SALES_RANK,
    CategoryRow,
    ColorRow,
    ProductCategoryRow,
    ProductRow,
)
from storefront.domain.entities import Product
from storefront.domain.exceptions import StorageFatalError, UpstreamDataError
from storefront.infrastructure.database import CatalogStore

logger = structlog.get_logger()


class ProductSource(Protocol):
    """Upstream provider of catalog data."""

    def get_products(self) -> AsyncIterator[Product]:
        """Lazily yield every upstream product once."""
        ...

    async def get_sales_ranks(self) -> dict[str, int]:
        """Map product id to best-selling rank (0 = best)."""
        ...


@dataclass
class SyncResult:
    """Counts of rows written by one synchronization.

    Attributes:
        products: Product rows inserted.
        categories: Distinct categories inserted.
        colors: Color rows inserted.
        duration_ms: Wall time of the transaction.
    """

    products: int = 0
    categories: int = 0
    colors: int = 0
    duration_ms: float = 0.0


def product_to_row(product: Product, sales_rank: int) -> dict[str, Any]:
    """Map a Product to product table column values.

    Args:
        product: Product to store.
        sales_rank: Best-selling rank.

    Returns:
        Column name to value mapping.
    """
    specs = product.specifications
    return {
        "id": product.id,
        "sku": product.sku,
        "title": product.title,
        "vendor": product.vendor.vendor,
        "price": product.price.usd_amount,
        "list_price": product.list_price.usd_amount if product.list_price else None,
        "options": json.dumps([o.to_dict() for o in product.options]),
        "variants": json.dumps([v.to_dict() for v in product.variants]),
        "images": json.dumps([i.to_dict() for i in product.images]),
        "ground_clearance": specs.ground_clearance,
        "weight_capacity": specs.weight_capacity,
        "turning_radius": specs.turning_radius,
        "range": specs.range,
        "max_speed": specs.max_speed,
        "wheels": specs.wheels,
        "published_at_unix_ms": product.published_at_ms,
        "sales_rank": sales_rank,
        "description_html": product.description_html,
        "model": product.model,
        "product_type": product.product_type,
        "model_image": product.model_image,
        "vendor_filter": product.vendor_filter,
    }


class CatalogSynchronizer:
    """Replaces the catalog cache with a fresh upstream snapshot.

    Only one synchronization runs at a time per synchronizer; SQLite's
    single-writer lock serializes synchronizers in other processes.

    Example usage:
        synchronizer = CatalogSynchronizer(store, ShopifyDataSource(...))
        result = await synchronizer.update_data()
    """

    def __init__(self, store: CatalogStore, source: ProductSource) -> None:
        """Initialize synchronizer.

        Args:
            store: Catalog database handle.
            source: Upstream product source.
        """
        self.store = store
        self.source = source
        self._lock = asyncio.Lock()

    async def update_data(self) -> SyncResult:
        """Run a full catalog replacement from the upstream source.

        Returns:
            Counts of rows written.
        """
        async with self._lock:
            logger.info("Running full catalog update")
            sales_ranks = await self.source.get_sales_ranks()
            logger.info("Fetched sales ranks", ranked_products=len(sales_ranks))
            return await self.replace_data(self.source.get_products(), sales_ranks)

    async def replace_data(
        self,
        products: AsyncIterable[Product],
        sales_ranks: Mapping[str, int],
    ) -> SyncResult:
        """Atomically replace all catalog rows.

        Args:
            products: Product stream, consumed one item at a time.
            sales_ranks: Product id to rank; missing products rank last.

        Returns:
            Counts of rows written.

        Raises:
            Exception: Whatever failed, after the transaction is rolled back.
        """
        result = SyncResult()
        start_time = time.perf_counter()

        async with self.store.session() as session:
            try:
                await self._clear_data(session)
                inserted_categories: set[str] = set()
                async for product in products:
                    await self._insert_product(
                        session,
                        product,
                        sales_ranks.get(product.id, MAX_SALES_RANK),
                        inserted_categories,
                        result,
                    )
                # A failed COMMIT ends the transaction, so it is not retried
                try:
                    await session.commit()
                except SQLAlchemyError as e:
                    raise StorageFatalError(str(e), statement="COMMIT") from e
            except Exception as e:
                await session.rollback()
                logger.error(
                    "Catalog update failed, rolled back",
                    products_written=result.products,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

        result.duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
        logger.info(
            "Catalog update complete",
            products=result.products,
            categories=result.categories,
            colors=result.colors,
            duration_ms=result.duration_ms,
        )
        return result

    async def _clear_data(self, session: AsyncSession) -> None:
        # Children before parents; foreign keys stay enforced
        for table in (ProductCategoryRow, ColorRow, ProductRow, CategoryRow):
            await self.store.execute(session, delete(table))

    async def _insert_product(
        self,
        session: AsyncSession,
        product: Product,
        sales_rank: int,
        inserted_categories: set[str],
        result: SyncResult,
    ) -> None:
        if product.categories is None:
            raise UpstreamDataError(
                "Expected product to have categories", product_id=product.id
            )
        if not product.variants:
            raise UpstreamDataError(
                "Expected at least one variant", product_id=product.id
            )

        await self.store.execute(
            session, insert(ProductRow).values(**product_to_row(product, sales_rank))
        )
        result.products += 1

        for color in dict.fromkeys(c.color for c in product.colors):
            await self.store.execute(
                session, insert(ColorRow).values(color=color, product_id=product.id)
            )
            result.colors += 1

        categories = list({c.id: c for c in product.categories}.values())
        for position, category in enumerate(categories):
            if category.title is None:
                raise UpstreamDataError(
                    f"Category {category.id} has no title", product_id=product.id
                )
            if category.id not in inserted_categories:
                await self.store.execute(
                    session,
                    insert(CategoryRow).values(id=category.id, title=category.title),
                )
                inserted_categories.add(category.id)
                result.categories += 1
            await self.store.execute(
                session,
                insert(ProductCategoryRow).values(
                    product_id=product.id,
                    category_id=category.id,
                    position=position,
                ),
            )
