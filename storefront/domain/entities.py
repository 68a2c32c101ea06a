"""Catalog entities.

Product is the central entity; it is created in bulk by the catalog
synchronizer and never mutated afterwards. ProductFilters and
ProductOrderBy describe the read-side query contract.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Self

from storefront.domain.exceptions import InvalidOrderByError
from storefront.domain.value_objects import (
    ProductCategory,
    ProductColor,
    ProductImage,
    ProductOption,
    ProductSpecifications,
    ProductVendor,
    Range,
    SelectedOption,
    UsdPrice,
)

# 31 days, matching the storefront "new" badge
NEW_PRODUCT_WINDOW_MS = 31 * 24 * 60 * 60 * 1000


@dataclass(frozen=True)
class ProductVariant:
    """A purchasable configuration of a product.

    Attributes:
        variant_id: Upstream variant identifier.
        price: Variant price.
        selected_options: One selected value per option axis.
    """

    variant_id: str
    price: UsdPrice
    selected_options: tuple[SelectedOption, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "variantId": self.variant_id,
            "price": self.price.to_dict(),
            "selectedOptions": [o.to_dict() for o in self.selected_options],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            variant_id=data["variantId"],
            price=UsdPrice.from_dict(data["price"]),
            selected_options=tuple(
                SelectedOption.from_dict(o) for o in data.get("selectedOptions", [])
            ),
        )


@dataclass
class Product:
    """Product entity in the catalog.

    Attributes:
        id: Stable slug-like identifier (upstream handle).
        sku: Upstream product id.
        title: Product title.
        vendor: Vendor name.
        description_html: Rich-text description.
        price: Price of the first variant.
        list_price: Compare-at price; set only when the product is on sale.
        options: Option axes with their values.
        variants: Ordered variants, at least one.
        colors: Ordered color tags.
        images: Ordered images, unique by URL.
        specifications: Numeric specifications.
        categories: Categories, or None when not loaded.
        published_at_ms: Publication time in unix milliseconds.
        model: Model classification.
        product_type: Product type classification.
        model_image: Model image URL.
        vendor_filter: Vendor tag used by the brand filter.
    """

    id: str
    sku: str
    title: str
    vendor: ProductVendor
    description_html: str
    price: UsdPrice
    list_price: UsdPrice | None
    options: list[ProductOption]
    variants: list[ProductVariant]
    colors: list[ProductColor]
    images: list[ProductImage]
    specifications: ProductSpecifications
    categories: list[ProductCategory] | None
    published_at_ms: int
    model: str = ""
    product_type: str = ""
    model_image: str = ""
    vendor_filter: str = ""

    def __repr__(self) -> str:
        """String representation."""
        return f"<Product(id={self.id}, title={self.title[:30]})>"

    @property
    def is_on_sale(self) -> bool:
        """Check whether a compare-at price is set."""
        return self.list_price is not None

    def is_new(self, now_ms: int | None = None) -> bool:
        """Check whether the product was published within the last 31 days.

        Args:
            now_ms: Current time in unix milliseconds (defaults to now).

        Returns:
            True if the product counts as new.
        """
        if now_ms is None:
            now_ms = int(time.time() * 1000)
        return now_ms - self.published_at_ms < NEW_PRODUCT_WINDOW_MS

    def default_selected_options(self) -> list[SelectedOption]:
        """Get the first value of every option axis."""
        return [
            SelectedOption(option.option_name, option.option_values[0])
            for option in self.options
            if option.option_values
        ]

    def selected_variant(self, selected: list[SelectedOption]) -> ProductVariant:
        """Find the variant matching every selected option.

        Falls back to the first variant when nothing matches.

        Args:
            selected: Selected option values.

        Returns:
            Matching variant.
        """
        for variant in self.variants:
            if all(option in variant.selected_options for option in selected):
                return variant
        return self.variants[0]


def get_option(selected: list[SelectedOption], option_name: str) -> str | None:
    """Get the selected value for an option axis, if any."""
    for option in selected:
        if option.option_name == option_name:
            return option.option_value
    return None


def set_option(
    selected: list[SelectedOption],
    option_name: str,
    option_value: str,
) -> list[SelectedOption]:
    """Return a copy of ``selected`` with one axis set to a new value."""
    return [
        SelectedOption(option_name, option_value)
        if option.option_name == option_name
        else option
        for option in selected
    ]


# ============================================================================
# Query Contract
# ============================================================================


class ProductOrderBy(str, Enum):
    """Supported sort orders for product listings."""

    DEFAULT = "default"
    NEWEST = "newest"
    BEST_SELLING = "bestSelling"
    PRICE_ASCENDING = "priceAscending"
    PRICE_DESCENDING = "priceDescending"

    @classmethod
    def parse(cls, value: "str | ProductOrderBy") -> "ProductOrderBy":
        """Parse a sort key.

        Args:
            value: Sort key or enum member.

        Returns:
            ProductOrderBy member.

        Raises:
            InvalidOrderByError: If the key is unknown.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise InvalidOrderByError(str(value)) from None


@dataclass(frozen=True)
class ProductFilters:
    """Filter set for product listings.

    Empty dimensions contribute no predicate.

    Attributes:
        search: Case-insensitive title substring.
        category_ids: Category membership (any of).
        vendor: Vendor membership (any of).
        wheels: Wheel count membership (any of).
        color: Color any-match against the product's colors.
        price: Price ranges (any of).
        ground_clearance: Ground clearance ranges (any of).
        weight_capacity: Weight capacity ranges (any of).
        turning_radius: Turning radius ranges (any of).
        travel_range: Travel range ranges (any of).
        max_speed: Max speed ranges (any of).
    """

    search: str = ""
    category_ids: tuple[str, ...] = ()
    vendor: tuple[ProductVendor, ...] = ()
    wheels: tuple[str, ...] = ()
    color: tuple[ProductColor, ...] = ()
    price: tuple[Range, ...] = ()
    ground_clearance: tuple[Range, ...] = ()
    weight_capacity: tuple[Range, ...] = ()
    turning_radius: tuple[Range, ...] = ()
    travel_range: tuple[Range, ...] = ()
    max_speed: tuple[Range, ...] = ()


EMPTY_FILTERS = ProductFilters()
