"""API schemas for the storefront catalog API.

Pydantic models for response serialization.
"""

from typing import Any

from pydantic import BaseModel, Field


# ============================================================================
# Common Schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Standard error response.

    All API errors follow this format for consistency.
    """

    error_code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] = Field(
        default_factory=dict, description="Additional error context"
    )
    request_id: str | None = Field(
        default=None, description="Request ID for correlation"
    )


class PriceSchema(BaseModel):
    """USD price as a two-decimal string."""

    usd_amount: str = Field(..., description="Amount in dollars, e.g. '19.99'")


class RangeSchema(BaseModel):
    """Inclusive range; a missing bound is open."""

    from_: str | None = Field(default=None, alias="from")
    to: str | None = None

    model_config = {"populate_by_name": True}


# ============================================================================
# Product Schemas
# ============================================================================


class CategoryRefSchema(BaseModel):
    """Category a product belongs to."""

    id: str
    title: str


class ImageSchema(BaseModel):
    """Product image."""

    url: str
    alt_text: str = ""


class OptionSchema(BaseModel):
    """Option axis with its values."""

    option_name: str
    option_values: list[str]


class SelectedOptionSchema(BaseModel):
    """Selected value on an option axis."""

    option_name: str
    option_value: str


class VariantSchema(BaseModel):
    """Purchasable product variant."""

    variant_id: str
    price: PriceSchema
    selected_options: list[SelectedOptionSchema]


class SpecificationsSchema(BaseModel):
    """Numeric product specifications."""

    ground_clearance: str | None = None
    weight_capacity: str | None = None
    turning_radius: str | None = None
    range: str | None = None
    max_speed: str | None = None
    wheels: str | None = None


class ProductSchema(BaseModel):
    """Product representation."""

    model_config = {"protected_namespaces": ()}

    id: str = Field(..., description="Product id (upstream handle)")
    sku: str
    title: str
    vendor: str
    description_html: str
    price: PriceSchema
    list_price: PriceSchema | None = None
    on_sale: bool
    is_new: bool
    options: list[OptionSchema]
    variants: list[VariantSchema]
    colors: list[str]
    images: list[ImageSchema]
    specifications: SpecificationsSchema
    categories: list[CategoryRefSchema] | None = Field(
        default=None, description="Only populated on the product detail endpoint"
    )
    published_at_ms: int
    model: str = ""
    product_type: str = ""
    model_image: str = ""
    vendor_filter: str = ""


class ProductListResponse(BaseModel):
    """One page of a filtered product listing."""

    items: list[ProductSchema]
    page: int = Field(..., description="Current page number")
    page_size: int = Field(..., description="Items per page")
    page_count: int = Field(..., description="Pages in the whole listing")
    has_more: bool = Field(..., description="Whether there are more pages")


class RelatedProductsResponse(BaseModel):
    """Products related to a reference product."""

    product_id: str
    category: CategoryRefSchema | None = None
    items: list[ProductSchema]


# ============================================================================
# Category Schemas
# ============================================================================


class SupportedFiltersSchema(BaseModel):
    """Filter dimensions offered on a category page."""

    price: list[RangeSchema] = Field(default_factory=list)
    wheels: list[str] = Field(default_factory=list)
    color: bool = False
    vendor: bool = False
    ground_clearance: list[RangeSchema] = Field(default_factory=list)
    weight_capacity: list[RangeSchema] = Field(default_factory=list)
    turning_radius: list[RangeSchema] = Field(default_factory=list)
    travel_range: list[RangeSchema] = Field(default_factory=list)
    max_speed: list[RangeSchema] = Field(default_factory=list)


class CategorySchema(BaseModel):
    """Navigation category with its subcategories."""

    id: str
    title: str
    image: str | None = None
    catchall: bool = False
    supported_filters: SupportedFiltersSchema
    subcategories: list["CategorySchema"] = Field(default_factory=list)


class CategoryListResponse(BaseModel):
    """Storefront category hierarchy."""

    categories: list[CategorySchema]
    total: int


class CategoryFacetsResponse(BaseModel):
    """Filter values available within a category."""

    category_id: str
    product_count: int
    vendors: list[str]
    colors: list[str]
    supported_filters: SupportedFiltersSchema
