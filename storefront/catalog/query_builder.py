"""Catalog query builder.

Translates a ProductFilters set, a sort order and a page
request into SQLAlchemy expression nodes. Nothing here touches the
database: every function returns statement fragments whose filter
values are bound parameters, never SQL literals.

Colors are matched after grouping: each product's distinct colors are
aggregated with group_concat and tested in a HAVING clause, because a
product with several colors spans several joined rows.
"""

import math
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import ColumnElement, Select, and_, func, or_, select
from sqlalchemy.dialects import sqlite
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import InstrumentedAttribute

from storefront.catalog.models import ColorRow, ProductCategoryRow, ProductRow
from storefront.domain.entities import ProductFilters, ProductOrderBy
from storefront.domain.exceptions import InvalidArgumentError, InvalidFilterError
from storefront.domain.value_objects import Range, UsdPrice

# Distinct colors of one product, comma separated
PRODUCT_COLORS = func.group_concat(ColorRow.color.distinct())

_ORDER_BY_COLUMNS: dict[ProductOrderBy, tuple[Any, ...]] = {
    ProductOrderBy.DEFAULT: (),
    ProductOrderBy.NEWEST: (ProductRow.published_at_unix_ms.desc(),),
    ProductOrderBy.BEST_SELLING: (ProductRow.sales_rank.asc(),),
    ProductOrderBy.PRICE_ASCENDING: (ProductRow.price.asc(),),
    ProductOrderBy.PRICE_DESCENDING: (ProductRow.price.desc(),),
}

_RANGE_COLUMNS: dict[str, InstrumentedAttribute[Any]] = {
    "price": ProductRow.price,
    "ground_clearance": ProductRow.ground_clearance,
    "weight_capacity": ProductRow.weight_capacity,
    "turning_radius": ProductRow.turning_radius,
    "travel_range": ProductRow.range,
    "max_speed": ProductRow.max_speed,
}


@dataclass(frozen=True)
class CompiledFragment:
    """Rendered SQL text with its ordered parameter list."""

    sql: str
    params: list[Any]


@dataclass(frozen=True)
class CatalogQuery:
    """Filter, sort and page fragments for one catalog query.

    Attributes:
        where: Row predicates, AND'ed together.
        having: Post-grouping predicates, AND'ed together.
        order_by: Sort clauses, product id last.
        limit: Maximum rows, or None.
        offset: Rows to skip, or None.
    """

    where: tuple[ColumnElement[bool], ...] = ()
    having: tuple[ColumnElement[bool], ...] = ()
    order_by: tuple[Any, ...] = (ProductRow.id.asc(),)
    limit: int | None = None
    offset: int | None = None

    @property
    def where_clause(self) -> ColumnElement[bool] | None:
        """Single WHERE expression, or None if unfiltered."""
        return and_(*self.where) if self.where else None

    @property
    def having_clause(self) -> ColumnElement[bool] | None:
        """Single HAVING expression, or None if no color filter."""
        return and_(*self.having) if self.having else None

    def apply(self, statement: Select[Any], paginate: bool = True) -> Select[Any]:
        """Apply the fragments to a product-grouped select.

        Args:
            statement: Select grouped by product id.
            paginate: Whether to apply ORDER BY, LIMIT and OFFSET.

        Returns:
            Extended select.
        """
        if self.where:
            statement = statement.where(*self.where)
        if self.having:
            statement = statement.having(*self.having)
        if paginate:
            statement = statement.order_by(*self.order_by)
            if self.limit is not None:
                statement = statement.limit(self.limit)
            if self.offset is not None:
                statement = statement.offset(self.offset)
        return statement

    def compile(self, dialect: Dialect | None = None) -> CompiledFragment:
        """Render the full listing statement for inspection.

        Args:
            dialect: SQL dialect (defaults to SQLite).

        Returns:
            SQL text and the flattened, ordered bound parameters.
        """
        statement = select_products(self)
        compiled = statement.compile(dialect=dialect or sqlite.dialect())
        params: list[Any] = []
        for name in compiled.positiontup or []:
            value = compiled.params.get(name)
            if isinstance(value, (list, tuple)):
                params.extend(value)
            else:
                params.append(value)
        return CompiledFragment(sql=str(compiled), params=params)


# ============================================================================
# Predicates
# ============================================================================


def search_predicate(search: str) -> ColumnElement[bool] | None:
    """Case-insensitive title substring match.

    LIKE wildcards in the search text are escaped.
    """
    if search == "":
        return None
    return ProductRow.title.icontains(search, autoescape=True)


def membership_predicate(
    column: Any,
    values: list[str],
) -> ColumnElement[bool] | None:
    """``column IN (...)`` over the values; None when empty."""
    if not values:
        return None
    return column.in_(values)


def _checked_bound(field_name: str, value: str) -> str:
    try:
        number = Decimal(value)
    except (InvalidOperation, TypeError):
        raise InvalidFilterError(field_name, value, "bound is not a number") from None
    if not number.is_finite():
        raise InvalidFilterError(field_name, value, "bound is not a number")
    return value


def range_predicate(
    field_name: str,
    column: Any,
    ranges: tuple[Range, ...],
) -> ColumnElement[bool] | None:
    """OR of ranges, each an AND of its present bounds.

    Args:
        field_name: Filter dimension (for error messages).
        column: Column to compare.
        ranges: Requested ranges.

    Returns:
        Predicate, or None when no range is given.

    Raises:
        InvalidFilterError: If a bound is not a number.
    """
    alternatives = []
    for item in ranges:
        bounds = []
        if item.from_ is not None:
            bounds.append(column >= _checked_bound(field_name, item.from_))
        if item.to is not None:
            bounds.append(column <= _checked_bound(field_name, item.to))
        if bounds:
            alternatives.append(and_(*bounds))
    if not alternatives:
        return None
    return or_(*alternatives)


def color_predicate(colors: list[str]) -> ColumnElement[bool] | None:
    """Any requested color is a case-sensitive substring of the aggregate."""
    if not colors:
        return None
    return or_(*[func.instr(PRODUCT_COLORS, color) > 0 for color in colors])


def where_predicates(filters: ProductFilters | None) -> tuple[ColumnElement[bool], ...]:
    """Build the row-level predicates of a filter set.

    Args:
        filters: Filter set, or None for no filtering.

    Returns:
        Predicates to AND together; empty when nothing is filtered.
    """
    if filters is None:
        return ()

    candidates = [
        search_predicate(filters.search),
        membership_predicate(ProductCategoryRow.category_id, list(filters.category_ids)),
        membership_predicate(ProductRow.wheels, list(filters.wheels)),
        membership_predicate(ProductRow.vendor, [v.vendor for v in filters.vendor]),
    ]
    for field_name, column in _RANGE_COLUMNS.items():
        candidates.append(range_predicate(field_name, column, getattr(filters, field_name)))

    return tuple(p for p in candidates if p is not None)


def having_predicates(filters: ProductFilters | None) -> tuple[ColumnElement[bool], ...]:
    """Build the post-grouping predicates (color any-match)."""
    if filters is None:
        return ()
    predicate = color_predicate([c.color for c in filters.color])
    return (predicate,) if predicate is not None else ()


# ============================================================================
# Sorting and Paging
# ============================================================================


def order_by_clauses(order_by: ProductOrderBy | str) -> tuple[Any, ...]:
    """Get sort clauses for a sort key, with product id as tie-breaker.

    Raises:
        InvalidOrderByError: If the key is unknown.
    """
    key = ProductOrderBy.parse(order_by)
    return (*_ORDER_BY_COLUMNS[key], ProductRow.id.asc())


def page_bounds(page_size: int, page_number: int) -> tuple[int, int]:
    """Get (limit, offset) for a 1-indexed page.

    Raises:
        InvalidArgumentError: If size or number is not positive.
    """
    if page_size < 1:
        raise InvalidArgumentError(
            f"Page size must be positive, got {page_size}",
            details={"page_size": page_size},
        )
    if page_number < 1:
        raise InvalidArgumentError(
            f"Page number must be positive, got {page_number}",
            details={"page_number": page_number},
        )
    return page_size, (page_number - 1) * page_size


def page_count(row_count: int, page_size: int) -> int:
    """Number of pages needed for ``row_count`` rows."""
    page_bounds(page_size, 1)
    return math.ceil(row_count / page_size)


# ============================================================================
# Query Construction
# ============================================================================


def build_catalog_query(
    filters: ProductFilters | None,
    order_by: ProductOrderBy | str,
    page_size: int | None = None,
    page_number: int | None = None,
) -> CatalogQuery:
    """Build the fragments for a product listing.

    Args:
        filters: Filter set, or None.
        order_by: Sort key.
        page_size: Page size; None for no paging.
        page_number: 1-indexed page number (default 1).

    Returns:
        CatalogQuery.

    Raises:
        InvalidArgumentError: On an unknown sort key, malformed filter
            value or invalid page request.
    """
    limit = offset = None
    if page_size is not None:
        limit, offset = page_bounds(page_size, page_number or 1)

    return CatalogQuery(
        where=where_predicates(filters),
        having=having_predicates(filters),
        order_by=order_by_clauses(order_by),
        limit=limit,
        offset=offset,
    )


def build_related_query(
    category_id: str,
    exclude_product_id: str,
    reference_price: UsdPrice,
    count: int,
) -> CatalogQuery:
    """Build the fragments for products related by category and price.

    Products in the category, other than the reference product, ordered
    by absolute price distance from the reference price.

    Raises:
        InvalidArgumentError: On a malformed price or non-positive count.
    """
    reference = _checked_bound("price", reference_price.usd_amount)
    limit, _ = page_bounds(count, 1)
    return CatalogQuery(
        where=(
            ProductCategoryRow.category_id.in_([category_id]),
            ProductRow.id != exclude_product_id,
        ),
        order_by=(func.abs(ProductRow.price - reference).asc(), ProductRow.id.asc()),
        limit=limit,
    )


def select_products(query: CatalogQuery) -> Select[Any]:
    """Listing statement: one row per product plus its color aggregate."""
    statement = (
        select(ProductRow, PRODUCT_COLORS.label("product_colors"))
        .outerjoin(ProductCategoryRow, ProductCategoryRow.product_id == ProductRow.id)
        .outerjoin(ColorRow, ColorRow.product_id == ProductRow.id)
        .group_by(ProductRow.id)
    )
    return query.apply(statement)


def count_products(query: CatalogQuery) -> Select[Any]:
    """Count statement over the same filtered, grouped product set."""
    grouped = query.apply(
        select(ProductRow.id)
        .outerjoin(ProductCategoryRow, ProductCategoryRow.product_id == ProductRow.id)
        .outerjoin(ColorRow, ColorRow.product_id == ProductRow.id)
        .group_by(ProductRow.id),
        paginate=False,
    )
    return select(func.count()).select_from(grouped.subquery())
