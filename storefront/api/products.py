"""Product API endpoints.

Provides the read-only product endpoints:
- GET /products - filtered, sorted, paginated listing
- GET /products/{id} - product details with categories
- GET /products/{id}/related - same-category products closest in price
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from storefront.api.dependencies import get_repository, get_supported_categories
from storefront.api.schemas import (
    CategoryRefSchema,
    ErrorResponse,
    ImageSchema,
    OptionSchema,
    PriceSchema,
    ProductListResponse,
    ProductSchema,
    RelatedProductsResponse,
    SelectedOptionSchema,
    SpecificationsSchema,
    VariantSchema,
)
from storefront.catalog.repository import CatalogRepository
from storefront.domain.entities import Product, ProductFilters
from storefront.domain.exceptions import InvalidFilterError
from storefront.domain.supported_categories import SupportedCategories, get_primary_category
from storefront.domain.value_objects import (
    ProductColor,
    ProductVendor,
    Range,
    UsdPrice,
)

router = APIRouter(prefix="/products", tags=["Products"])

RangeParam = Annotated[
    list[str] | None,
    Query(description="Range as 'from-to', 'from-' or '-to'; repeat for OR"),
]
ValuesParam = Annotated[list[str] | None, Query(description="Repeat for OR")]


# ============================================================================
# Converters
# ============================================================================


def price_to_schema(price: UsdPrice) -> PriceSchema:
    """Convert UsdPrice to PriceSchema."""
    return PriceSchema(usd_amount=price.usd_amount)


def product_to_schema(product: Product) -> ProductSchema:
    """Convert a Product entity to its API representation."""
    specs = product.specifications
    return ProductSchema(
        id=product.id,
        sku=product.sku,
        title=product.title,
        vendor=product.vendor.vendor,
        description_html=product.description_html,
        price=price_to_schema(product.price),
        list_price=price_to_schema(product.list_price) if product.list_price else None,
        on_sale=product.is_on_sale,
        is_new=product.is_new(),
        options=[
            OptionSchema(option_name=o.option_name, option_values=list(o.option_values))
            for o in product.options
        ],
        variants=[
            VariantSchema(
                variant_id=v.variant_id,
                price=price_to_schema(v.price),
                selected_options=[
                    SelectedOptionSchema(option_name=s.option_name, option_value=s.option_value)
                    for s in v.selected_options
                ],
            )
            for v in product.variants
        ],
        colors=[c.color for c in product.colors],
        images=[ImageSchema(url=i.url, alt_text=i.alt_text) for i in product.images],
        specifications=SpecificationsSchema(
            ground_clearance=specs.ground_clearance,
            weight_capacity=specs.weight_capacity,
            turning_radius=specs.turning_radius,
            range=specs.range,
            max_speed=specs.max_speed,
            wheels=specs.wheels,
        ),
        categories=(
            [CategoryRefSchema(id=c.id, title=c.title) for c in product.categories]
            if product.categories is not None
            else None
        ),
        published_at_ms=product.published_at_ms,
        model=product.model,
        product_type=product.product_type,
        model_image=product.model_image,
        vendor_filter=product.vendor_filter,
    )


def parse_ranges(field: str, values: list[str] | None) -> tuple[Range, ...]:
    """Parse repeated range query parameters.

    Raises:
        InvalidFilterError: If a value is not a range.
    """
    ranges = []
    for value in values or []:
        try:
            ranges.append(Range.parse(value))
        except ValueError as e:
            raise InvalidFilterError(field, value, str(e)) from None
    return tuple(ranges)


def build_filters(
    search: str,
    category: list[str] | None,
    vendor: list[str] | None,
    wheels: list[str] | None,
    color: list[str] | None,
    price: list[str] | None,
    ground_clearance: list[str] | None,
    weight_capacity: list[str] | None,
    turning_radius: list[str] | None,
    travel_range: list[str] | None,
    max_speed: list[str] | None,
) -> ProductFilters:
    """Assemble ProductFilters from query parameters."""
    return ProductFilters(
        search=search,
        category_ids=tuple(category or ()),
        vendor=tuple(ProductVendor(v) for v in vendor or ()),
        wheels=tuple(wheels or ()),
        color=tuple(ProductColor(c) for c in color or ()),
        price=parse_ranges("price", price),
        ground_clearance=parse_ranges("ground_clearance", ground_clearance),
        weight_capacity=parse_ranges("weight_capacity", weight_capacity),
        turning_radius=parse_ranges("turning_radius", turning_radius),
        travel_range=parse_ranges("travel_range", travel_range),
        max_speed=parse_ranges("max_speed", max_speed),
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=ProductListResponse,
    responses={422: {"model": ErrorResponse}},
    summary="List products",
    description="Get a filtered, sorted page of products.",
)
async def list_products(
    repository: Annotated[CatalogRepository, Depends(get_repository)],
    page: int = Query(default=1, ge=1, description="Page number"),
    page_size: int = Query(default=20, ge=1, le=100, description="Items per page"),
    order_by: str = Query(default="default", description="Sort key"),
    search: str = Query(default="", description="Title substring"),
    category: ValuesParam = None,
    vendor: ValuesParam = None,
    wheels: ValuesParam = None,
    color: ValuesParam = None,
    price: RangeParam = None,
    ground_clearance: RangeParam = None,
    weight_capacity: RangeParam = None,
    turning_radius: RangeParam = None,
    travel_range: RangeParam = None,
    max_speed: RangeParam = None,
) -> ProductListResponse:
    """List products matching the filters.

    Every list-valued parameter may be repeated; values of one
    parameter are OR'ed and different parameters are AND'ed.

    Returns:
        The requested page plus the total page count.
    """
    filters = build_filters(
        search,
        category,
        vendor,
        wheels,
        color,
        price,
        ground_clearance,
        weight_capacity,
        turning_radius,
        travel_range,
        max_speed,
    )
    products = await repository.get_products_page(order_by, page_size, page, filters)
    page_count = await repository.count_products_pages(order_by, page_size, filters)

    return ProductListResponse(
        items=[product_to_schema(p) for p in products],
        page=page,
        page_size=page_size,
        page_count=page_count,
        has_more=page < page_count,
    )


@router.get(
    "/{product_id}",
    response_model=ProductSchema,
    responses={404: {"model": ErrorResponse}},
    summary="Get product details",
)
async def get_product(
    product_id: str,
    repository: Annotated[CatalogRepository, Depends(get_repository)],
) -> ProductSchema:
    """Get a product by id, including its categories.

    Raises:
        ProductNotFoundError: If the product does not exist (404).
    """
    product = await repository.get_product(product_id)
    return product_to_schema(product)


@router.get(
    "/{product_id}/related",
    response_model=RelatedProductsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get related products",
    description="Products of the same primary category, closest in price.",
)
async def get_related_products(
    product_id: str,
    repository: Annotated[CatalogRepository, Depends(get_repository)],
    categories: Annotated[SupportedCategories, Depends(get_supported_categories)],
    count: int = Query(default=4, ge=1, le=24, description="Maximum products"),
) -> RelatedProductsResponse:
    """Get products related to a product.

    The primary category is the product's first top-level navigation
    category; products without one have no related products.
    """
    product = await repository.get_product(product_id)
    category = get_primary_category(product, categories)
    if category is None:
        return RelatedProductsResponse(product_id=product_id, items=[])

    related = await repository.get_related_products(category, product.id, product.price, count)
    return RelatedProductsResponse(
        product_id=product_id,
        category=CategoryRefSchema(id=category.id, title=category.title),
        items=[product_to_schema(p) for p in related],
    )
