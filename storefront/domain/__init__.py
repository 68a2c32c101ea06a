"""Domain layer - catalog entities, value objects and exceptions.

Example usage:
    from storefront.domain import ProductFilters, ProductOrderBy, Range

    filters = ProductFilters(
        category_ids=("scooters",),
        price=(Range(from_="100", to="500"),),
    )
"""

from storefront.domain.entities import (
    EMPTY_FILTERS,
    Product,
    ProductFilters,
    ProductOrderBy,
    ProductVariant,
)
from storefront.domain.exceptions import (
    CatalogError,
    InvalidArgumentError,
    InvalidFilterError,
    InvalidOrderByError,
    NotFoundError,
    ProductNotFoundError,
    StorageError,
    StorageFatalError,
    StorageTransientError,
    UpstreamDataError,
)
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

__all__ = [
    # Entities
    "EMPTY_FILTERS",
    "Product",
    "ProductFilters",
    "ProductOrderBy",
    "ProductVariant",
    # Value objects
    "ProductCategory",
    "ProductColor",
    "ProductImage",
    "ProductOption",
    "ProductSpecifications",
    "ProductVendor",
    "Range",
    "SelectedOption",
    "UsdPrice",
    # Exceptions
    "CatalogError",
    "InvalidArgumentError",
    "InvalidFilterError",
    "InvalidOrderByError",
    "NotFoundError",
    "ProductNotFoundError",
    "StorageError",
    "StorageFatalError",
    "StorageTransientError",
    "UpstreamDataError",
]
