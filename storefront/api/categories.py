"""Category API endpoints.

Provides endpoints for the storefront navigation hierarchy and the
filter facets offered on a category page.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from storefront.api.dependencies import get_repository, get_supported_categories
from storefront.api.schemas import (
    CategoryFacetsResponse,
    CategoryListResponse,
    CategorySchema,
    ErrorResponse,
    RangeSchema,
    SupportedFiltersSchema,
)
from storefront.catalog.repository import CatalogRepository
from storefront.domain.supported_categories import (
    SupportedCategories,
    SupportedCategory,
    SupportedFilters,
    get_category_by_id,
    get_subcategories,
    get_supported_filters,
)
from storefront.domain.value_objects import Range

router = APIRouter(prefix="/categories", tags=["Categories"])


# ============================================================================
# Converters
# ============================================================================


def _ranges(ranges: tuple[Range, ...]) -> list[RangeSchema]:
    return [RangeSchema(from_=r.from_, to=r.to) for r in ranges]


def filters_to_schema(filters: SupportedFilters) -> SupportedFiltersSchema:
    """Convert SupportedFilters to its API representation."""
    return SupportedFiltersSchema(
        price=_ranges(filters.price),
        wheels=list(filters.wheels),
        color=filters.color,
        vendor=filters.vendor,
        ground_clearance=_ranges(filters.ground_clearance),
        weight_capacity=_ranges(filters.weight_capacity),
        turning_radius=_ranges(filters.turning_radius),
        travel_range=_ranges(filters.travel_range),
        max_speed=_ranges(filters.max_speed),
    )


def category_to_schema(category: SupportedCategory) -> CategorySchema:
    """Convert a SupportedCategory (with children) to its API representation."""
    return CategorySchema(
        id=category.id,
        title=category.title,
        image=category.image,
        catchall=category.catchall,
        supported_filters=filters_to_schema(category.supported_filters),
        subcategories=[category_to_schema(c) for c in category.subcategories],
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "",
    response_model=CategoryListResponse,
    summary="List categories",
    description="Get the storefront category hierarchy in display order.",
)
async def list_categories(
    categories: Annotated[SupportedCategories, Depends(get_supported_categories)],
) -> CategoryListResponse:
    """List top-level categories with their subcategories."""
    top_level = categories.get_supported_categories()
    return CategoryListResponse(
        categories=[category_to_schema(c) for c in top_level],
        total=len(top_level),
    )


@router.get(
    "/{category_id}/facets",
    response_model=CategoryFacetsResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Get category facets",
    description="Vendors, colors and supported filters of a category and its subcategories.",
)
async def get_category_facets(
    category_id: str,
    repository: Annotated[CatalogRepository, Depends(get_repository)],
    categories: Annotated[SupportedCategories, Depends(get_supported_categories)],
) -> CategoryFacetsResponse:
    """Get the filter facets for a category page.

    A catch-all category spans the whole catalog; any other category
    spans itself plus its subcategories.

    Raises:
        HTTPException: 404 if the category is not configured.
    """
    category = get_category_by_id(categories, category_id)
    if category is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error_code": "CATEGORY_NOT_FOUND",
                "message": f"Category {category_id} not found",
                "details": {"category_id": category_id},
            },
        )

    scope = [category_id, *(c.id for c in get_subcategories(categories, category_id))]
    catalog_scope = [] if category.catchall else scope

    vendors = await repository.get_vendors_for_categories(catalog_scope)
    colors = await repository.get_colors_for_categories(catalog_scope)
    product_count = await repository.count_products_in_category(category_id)

    return CategoryFacetsResponse(
        category_id=category_id,
        product_count=product_count,
        vendors=[v.vendor for v in vendors],
        colors=[c.color for c in colors],
        supported_filters=filters_to_schema(get_supported_filters(categories, scope)),
    )
