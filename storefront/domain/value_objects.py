"""Value Objects for the catalog domain.

Value objects are immutable and compared by their attributes. The
``to_dict``/``from_dict`` pairs define the JSON shape stored in the
product table blobs and returned by the API.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Self


# ============================================================================
# Money
# ============================================================================


@dataclass(frozen=True)
class UsdPrice:
    """A USD amount kept as its decimal string (e.g. "19.99").

    Attributes:
        usd_amount: Decimal amount in dollars.
    """

    usd_amount: str

    def to_decimal(self) -> Decimal:
        """Convert to Decimal.

        Returns:
            Decimal amount.

        Raises:
            ValueError: If the amount is not a decimal number.
        """
        try:
            return Decimal(self.usd_amount)
        except InvalidOperation as e:
            raise ValueError(f"Malformed USD amount {self.usd_amount!r}") from e

    def to_dict(self) -> dict[str, str]:
        return {"usdAmount": self.usd_amount}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(usd_amount=str(data["usdAmount"]))


# ============================================================================
# Catalog Tags
# ============================================================================


@dataclass(frozen=True)
class ProductVendor:
    """Vendor (brand) name of a product."""

    vendor: str


@dataclass(frozen=True)
class ProductColor:
    """Color tag of a product."""

    color: str


@dataclass(frozen=True)
class ProductCategory:
    """Category (upstream collection) a product belongs to."""

    id: str
    title: str

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "title": self.title}


@dataclass(frozen=True)
class ProductImage:
    """Product image reference."""

    url: str
    alt_text: str = ""

    def to_dict(self) -> dict[str, str]:
        return {"url": self.url, "altText": self.alt_text}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(url=data["url"], alt_text=data.get("altText") or "")


# ============================================================================
# Options
# ============================================================================


@dataclass(frozen=True)
class ProductOption:
    """A named option axis with its ordered values (e.g. Color: Red, Blue)."""

    option_name: str
    option_values: tuple[str, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"optionName": self.option_name, "optionValues": list(self.option_values)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(
            option_name=data["optionName"],
            option_values=tuple(data["optionValues"]),
        )


@dataclass(frozen=True)
class SelectedOption:
    """One chosen value on one option axis."""

    option_name: str
    option_value: str

    def to_dict(self) -> dict[str, str]:
        return {"optionName": self.option_name, "optionValue": self.option_value}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(option_name=data["optionName"], option_value=data["optionValue"])


# ============================================================================
# Specifications
# ============================================================================


@dataclass(frozen=True)
class ProductSpecifications:
    """Numeric product specifications, each kept as an optional string.

    Attributes:
        ground_clearance: Ground clearance.
        weight_capacity: Maximum load.
        turning_radius: Turning radius.
        range: Travel range on one charge.
        max_speed: Top speed.
        wheels: Wheel count.
    """

    ground_clearance: str | None = None
    weight_capacity: str | None = None
    turning_radius: str | None = None
    range: str | None = None
    max_speed: str | None = None
    wheels: str | None = None

    def is_empty(self) -> bool:
        """Check whether no specification is set."""
        return all(
            value is None
            for value in (
                self.ground_clearance,
                self.weight_capacity,
                self.turning_radius,
                self.range,
                self.max_speed,
                self.wheels,
            )
        )

    def to_dict(self) -> dict[str, str | None]:
        return {
            "groundClearance": self.ground_clearance,
            "weightCapacity": self.weight_capacity,
            "turningRadius": self.turning_radius,
            "range": self.range,
            "maxSpeed": self.max_speed,
            "wheels": self.wheels,
        }


# ============================================================================
# Filter Ranges
# ============================================================================


@dataclass(frozen=True)
class Range:
    """Inclusive numeric interval with optionally open bounds.

    At least one bound must be set.

    Attributes:
        from_: Lower bound, or None for unbounded.
        to: Upper bound, or None for unbounded.
    """

    from_: str | None = None
    to: str | None = None

    def __post_init__(self) -> None:
        """Validate that the range is bounded on at least one side."""
        if self.from_ is None and self.to is None:
            raise ValueError("Range needs at least one bound")

    def to_dict(self) -> dict[str, str | None]:
        return {"from": self.from_, "to": self.to}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        return cls(from_=data.get("from"), to=data.get("to"))

    @classmethod
    def parse(cls, value: str) -> Self:
        """Parse the query-string form ``from-to``, ``from-`` or ``-to``.

        Args:
            value: Range text.

        Returns:
            Range instance.

        Raises:
            ValueError: If the text is not a range.
        """
        lower, sep, upper = value.strip().partition("-")
        if not sep:
            raise ValueError(f"Range {value!r} must contain '-'")
        return cls(from_=lower.strip() or None, to=upper.strip() or None)
