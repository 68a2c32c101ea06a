"""Supported categories configuration.

The storefront shows a fixed two-level category hierarchy. Each
category declares which filter dimensions its listing page offers and
the preset ranges/values for each. The configuration is loaded from a
JSON file; the helpers here resolve and merge it.

File format:
    {
      "categories": [
        {
          "id": "mobility-scooters",
          "title": "Mobility Scooters",
          "catchall": false,
          "supportedFilters": {"price": [{"from": "0", "to": "1000"}], "vendor": true},
          "subcategories": [ ... same shape without subcategories ... ]
        }
      ]
    }
"""

import json
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Iterator, Self

from storefront.domain.entities import Product
from storefront.domain.value_objects import ProductCategory, Range

_RANGE_FIELDS = (
    "price",
    "ground_clearance",
    "weight_capacity",
    "turning_radius",
    "travel_range",
    "max_speed",
)

_JSON_NAMES = {
    "price": "price",
    "wheels": "wheels",
    "color": "color",
    "vendor": "vendor",
    "ground_clearance": "groundClearance",
    "weight_capacity": "weightCapacity",
    "turning_radius": "turningRadius",
    "travel_range": "travelRange",
    "max_speed": "maxSpeed",
}


@dataclass(frozen=True)
class SupportedFilters:
    """Filter dimensions enabled on a category page.

    Range dimensions list their preset ranges; ``wheels`` lists its
    values; ``color`` and ``vendor`` are on/off flags because their
    values are discovered from the catalog.
    """

    price: tuple[Range, ...] = ()
    wheels: tuple[str, ...] = ()
    color: bool = False
    vendor: bool = False
    ground_clearance: tuple[Range, ...] = ()
    weight_capacity: tuple[Range, ...] = ()
    turning_radius: tuple[Range, ...] = ()
    travel_range: tuple[Range, ...] = ()
    max_speed: tuple[Range, ...] = ()

    def merge(self, other: "SupportedFilters") -> "SupportedFilters":
        """Union two filter declarations.

        Ranges are de-duplicated and sorted by numeric lower bound,
        values are de-duplicated and sorted, flags are OR'd.

        Args:
            other: Filters to merge in.

        Returns:
            Merged filters.
        """
        merged: dict[str, Any] = {
            name: _unique_sorted_ranges(getattr(self, name), getattr(other, name))
            for name in _RANGE_FIELDS
        }
        return SupportedFilters(
            wheels=tuple(sorted(set(self.wheels) | set(other.wheels))),
            color=self.color or other.color,
            vendor=self.vendor or other.vendor,
            **merged,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            _JSON_NAMES[name]: [r.to_dict() for r in getattr(self, name)]
            for name in _RANGE_FIELDS
        }
        result["wheels"] = list(self.wheels)
        result["color"] = self.color
        result["vendor"] = self.vendor
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        ranges = {
            name: tuple(Range.from_dict(r) for r in data.get(_JSON_NAMES[name], []))
            for name in _RANGE_FIELDS
        }
        return cls(
            wheels=tuple(str(w) for w in data.get("wheels", [])),
            color=bool(data.get("color", False)),
            vendor=bool(data.get("vendor", False)),
            **ranges,
        )


NO_SUPPORTED_FILTERS = SupportedFilters()


def _range_sort_key(item: Range) -> Decimal:
    try:
        return Decimal(item.from_ if item.from_ is not None else "0")
    except InvalidOperation:
        return Decimal(0)


def _unique_sorted_ranges(
    first: tuple[Range, ...],
    second: tuple[Range, ...],
) -> tuple[Range, ...]:
    unique = list(dict.fromkeys([*first, *second]))
    # sorted() is stable, so equal lower bounds keep first-seen order
    return tuple(sorted(unique, key=_range_sort_key))


@dataclass(frozen=True)
class SupportedCategory:
    """A category shown in the storefront navigation.

    Attributes:
        id: Category id (matches the upstream collection handle).
        title: Display title.
        supported_filters: Filters offered on the category page.
        image: Optional navigation image URL.
        catchall: True for the "all products" style category.
        subcategories: Ordered child categories (top level only).
    """

    id: str
    title: str
    supported_filters: SupportedFilters = NO_SUPPORTED_FILTERS
    image: str | None = None
    catchall: bool = False
    subcategories: tuple["SupportedCategory", ...] = field(default=(), repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "image": self.image,
            "catchall": self.catchall,
            "supportedFilters": self.supported_filters.to_dict(),
            "subcategories": [c.to_dict() for c in self.subcategories],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            id=data["id"],
            title=data["title"],
            supported_filters=SupportedFilters.from_dict(data.get("supportedFilters", {})),
            image=data.get("image"),
            catchall=bool(data.get("catchall", False)),
            subcategories=tuple(cls.from_dict(c) for c in data.get("subcategories", [])),
        )


class SupportedCategories:
    """The storefront category hierarchy.

    Example usage:
        categories = SupportedCategories.from_file("config/supported_categories.json")
        filters = get_supported_filters(categories, ["scooters"])
    """

    def __init__(self, categories: list[SupportedCategory]) -> None:
        self._categories = list(categories)

    @classmethod
    def from_file(cls, path: str | Path) -> "SupportedCategories":
        """Load categories from a JSON file.

        Args:
            path: Path to the configuration file.

        Returns:
            SupportedCategories instance.
        """
        data = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls([SupportedCategory.from_dict(c) for c in data.get("categories", [])])

    def get_supported_categories(self) -> list[SupportedCategory]:
        """Get top-level categories in display order."""
        return list(self._categories)

    def get_supported_categories_without_catchall(self) -> list[SupportedCategory]:
        """Get top-level categories excluding the catch-all."""
        return [c for c in self._categories if not c.catchall]

    def flatten(self) -> Iterator[SupportedCategory]:
        """Iterate every category, parents before their children."""
        for category in self._categories:
            yield category
            yield from category.subcategories


def get_subcategories(
    categories: SupportedCategories,
    category_id: str,
) -> tuple[SupportedCategory, ...]:
    """Get the subcategories of a top-level category (empty if unknown)."""
    for category in categories.get_supported_categories():
        if category.id == category_id:
            return category.subcategories
    return ()


def get_category_by_id(
    categories: SupportedCategories,
    category_id: str,
) -> SupportedCategory | None:
    """Find a category at any level by id."""
    for category in categories.flatten():
        if category.id == category_id:
            return category
    return None


def get_supported_filters(
    categories: SupportedCategories,
    category_ids: list[str],
) -> SupportedFilters:
    """Merge the filter declarations of every category in scope.

    Args:
        categories: Category configuration.
        category_ids: Categories currently in scope.

    Returns:
        Union of their supported filters.
    """
    merged = NO_SUPPORTED_FILTERS
    for category in categories.flatten():
        if category.id in category_ids:
            merged = merged.merge(category.supported_filters)
    return merged


def get_primary_category(
    product: Product,
    categories: SupportedCategories,
) -> ProductCategory | None:
    """Get the first product category that is a top-level navigation entry."""
    top_level = {c.id for c in categories.get_supported_categories_without_catchall()}
    for category in product.categories or []:
        if category.id in top_level:
            return category
    return None
