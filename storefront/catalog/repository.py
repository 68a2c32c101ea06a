"""Catalog repository for read operations.

Executes query-builder statements against the catalog store and maps
result rows back into Product entities.
"""

import json
from collections.abc import Sequence
from typing import Any

import structlog
from sqlalchemy import distinct, func, select

from storefront.catalog.models import CategoryRow, ColorRow, ProductCategoryRow, ProductRow
from storefront.catalog.query_builder import (
    CatalogQuery,
    build_catalog_query,
    build_related_query,
    count_products,
    membership_predicate,
    page_count,
    select_products,
)
from storefront.domain.entities import Product, ProductFilters, ProductOrderBy, ProductVariant
from storefront.domain.exceptions import ProductNotFoundError
from storefront.domain.value_objects import (
    ProductCategory,
    ProductColor,
    ProductImage,
    ProductOption,
    ProductSpecifications,
    ProductVendor,
    UsdPrice,
)
from storefront.infrastructure.database import CatalogStore

logger = structlog.get_logger()


# ============================================================================
# Row Mapping
# ============================================================================


def format_price(amount: str) -> str:
    """Format a stored amount with exactly two decimals, truncating extras.

    Args:
        amount: Decimal text such as "20", "19.9" or "19.999".

    Returns:
        Two-decimal text such as "20.00", "19.90", "19.99".
    """
    dollars, _, cents = amount.partition(".")
    return f"{dollars}.{(cents + '00')[:2]}"


def parse_colors(product_colors: str | None) -> list[ProductColor]:
    """Split a color aggregate into sorted colors, dropping empty segments."""
    colors = [c for c in (product_colors or "").split(",") if c != ""]
    return [ProductColor(c) for c in sorted(colors)]


def remove_duplicate_images(images: list[ProductImage]) -> list[ProductImage]:
    """De-duplicate images by URL.

    The last image with a given URL wins; it keeps the position where
    that URL first appeared.
    """
    by_url: dict[str, ProductImage] = {}
    for image in images:
        by_url[image.url] = image
    return list(by_url.values())


def row_to_product(
    row: ProductRow,
    product_colors: str | None,
    categories: list[ProductCategory] | None = None,
) -> Product:
    """Map a product row and its color aggregate to a Product.

    Args:
        row: Product table row.
        product_colors: Comma-separated colors of the product.
        categories: Categories, when loaded by a separate query.

    Returns:
        Product entity.
    """
    return Product(
        id=row.id,
        sku=row.sku,
        title=row.title,
        vendor=ProductVendor(row.vendor),
        description_html=row.description_html or "",
        price=UsdPrice(format_price(row.price)),
        list_price=UsdPrice(format_price(row.list_price)) if row.list_price is not None else None,
        options=[ProductOption.from_dict(o) for o in json.loads(row.options)],
        variants=[ProductVariant.from_dict(v) for v in json.loads(row.variants)],
        colors=parse_colors(product_colors),
        images=remove_duplicate_images(
            [ProductImage.from_dict(i) for i in json.loads(row.images)]
        ),
        specifications=ProductSpecifications(
            ground_clearance=row.ground_clearance,
            weight_capacity=row.weight_capacity,
            turning_radius=row.turning_radius,
            range=row.range,
            max_speed=row.max_speed,
            wheels=row.wheels,
        ),
        categories=categories,
        published_at_ms=row.published_at_unix_ms,
        model=row.model or "",
        product_type=row.product_type or "",
        model_image=row.model_image or "",
        vendor_filter=row.vendor_filter or "",
    )


# ============================================================================
# Repository
# ============================================================================


class CatalogRepository:
    """Read side of the catalog cache.

    Every call opens its own session and either returns complete
    entities or raises; there are no partial results.

    Example usage:
        repo = CatalogRepository(store)
        products = await repo.get_products_page(
            ProductOrderBy.PRICE_ASCENDING,
            page_size=20,
            page_number=1,
            filters=ProductFilters(category_ids=("scooters",)),
        )
    """

    def __init__(self, store: CatalogStore) -> None:
        """Initialize repository with the catalog store.

        Args:
            store: Catalog database handle.
        """
        self.store = store

    async def get_products_page(
        self,
        order_by: ProductOrderBy | str,
        page_size: int,
        page_number: int,
        filters: ProductFilters | None = None,
    ) -> list[Product]:
        """Get one page of products matching the filters.

        Categories are not loaded for listing results.

        Args:
            order_by: Sort key.
            page_size: Products per page.
            page_number: 1-indexed page number.
            filters: Optional filter set.

        Returns:
            Products of the page, in sort order.
        """
        query = build_catalog_query(filters, order_by, page_size, page_number)
        return await self._fetch_products(query)

    async def count_products_pages(
        self,
        order_by: ProductOrderBy | str,
        page_size: int,
        filters: ProductFilters | None = None,
    ) -> int:
        """Count the pages needed for the products matching the filters.

        Args:
            order_by: Sort key (validated, does not affect the count).
            page_size: Products per page.
            filters: Optional filter set.

        Returns:
            Number of pages.
        """
        query = build_catalog_query(filters, order_by)
        async with self.store.session() as session:
            result = await self.store.execute(session, count_products(query))
            product_count = result.scalar_one()
        return page_count(product_count, page_size)

    async def get_product(self, product_id: str) -> Product:
        """Get a product with its categories.

        Args:
            product_id: Product id.

        Returns:
            Product.

        Raises:
            ProductNotFoundError: If no such product exists.
        """
        query = CatalogQuery(where=(ProductRow.id == product_id,))
        async with self.store.session() as session:
            result = await self.store.execute(session, select_products(query))
            row = result.first()
            if row is None:
                raise ProductNotFoundError(product_id)
            categories = await self._get_product_categories(session, product_id)
        return row_to_product(row[0], row.product_colors, categories)

    async def get_related_products(
        self,
        category: ProductCategory,
        exclude_product_id: str,
        reference_price: UsdPrice,
        count: int,
    ) -> list[Product]:
        """Get products of a category closest in price to a reference.

        Args:
            category: Category to search in.
            exclude_product_id: Product to leave out (usually the one shown).
            reference_price: Price to compare against.
            count: Maximum number of products.

        Returns:
            Products ordered by absolute price distance.
        """
        query = build_related_query(category.id, exclude_product_id, reference_price, count)
        return await self._fetch_products(query)

    async def get_vendors_for_categories(
        self,
        category_ids: Sequence[str],
    ) -> list[ProductVendor]:
        """Get the distinct vendors within some categories, alphabetically.

        Args:
            category_ids: Category scope; empty means the whole catalog.

        Returns:
            Sorted vendors.
        """
        statement = (
            select(ProductRow.vendor)
            .distinct()
            .outerjoin(ProductCategoryRow, ProductRow.id == ProductCategoryRow.product_id)
            .order_by(ProductRow.vendor)
        )
        predicate = membership_predicate(ProductCategoryRow.category_id, list(category_ids))
        if predicate is not None:
            statement = statement.where(predicate)

        async with self.store.session() as session:
            result = await self.store.execute(session, statement)
            return [ProductVendor(vendor) for vendor in result.scalars().all()]

    async def get_colors_for_categories(
        self,
        category_ids: Sequence[str],
    ) -> list[ProductColor]:
        """Get the distinct colors within some categories, alphabetically.

        Args:
            category_ids: Category scope; empty means the whole catalog.

        Returns:
            Sorted colors.
        """
        statement = (
            select(ColorRow.color)
            .distinct()
            .outerjoin(ProductCategoryRow, ColorRow.product_id == ProductCategoryRow.product_id)
            .order_by(ColorRow.color)
        )
        predicate = membership_predicate(ProductCategoryRow.category_id, list(category_ids))
        if predicate is not None:
            statement = statement.where(predicate)

        async with self.store.session() as session:
            result = await self.store.execute(session, statement)
            return [ProductColor(color) for color in result.scalars().all()]

    async def count_products_in_category(self, category_id: str) -> int:
        """Count the products in a category.

        Args:
            category_id: Category id.

        Returns:
            Number of products.
        """
        statement = select(func.count(distinct(ProductCategoryRow.product_id))).where(
            ProductCategoryRow.category_id == category_id
        )
        async with self.store.session() as session:
            result = await self.store.execute(session, statement)
            return result.scalar_one()

    async def _fetch_products(self, query: CatalogQuery) -> list[Product]:
        async with self.store.session() as session:
            result = await self.store.execute(session, select_products(query))
            rows = result.all()
        return [row_to_product(row[0], row.product_colors) for row in rows]

    async def _get_product_categories(
        self,
        session: Any,
        product_id: str,
    ) -> list[ProductCategory]:
        statement = (
            select(CategoryRow.id, CategoryRow.title)
            .join(ProductCategoryRow, ProductCategoryRow.category_id == CategoryRow.id)
            .where(ProductCategoryRow.product_id == product_id)
            .order_by(ProductCategoryRow.position, CategoryRow.id)
        )
        result = await self.store.execute(session, statement)
        return [ProductCategory(id=row.id, title=row.title) for row in result.all()]
