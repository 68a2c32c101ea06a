"""SQLAlchemy models for the catalog cache.

Defines the product, category, product_category and color tables. All
four are WITHOUT ROWID tables keyed by their natural primary keys.
Options, variants and images are stored as JSON text since they are
always read and written whole.
"""

from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from storefront.infrastructure.database import Base

# Largest SQLite integer; products missing from the sales ranking sort last
MAX_SALES_RANK = 2**63 - 1


def to_number(value: Any) -> Decimal | None:
    """Parse a finite decimal, or None when the value is not one."""
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return number if number.is_finite() else None


class DecimalString(TypeDecorator[str]):
    """NUMERIC column exchanged as a decimal string.

    Values are compared numerically in SQL but read back as their
    shortest decimal text ("10", "4.5"). Text that is not a number is
    stored and returned unchanged.
    """

    impl = Numeric(asdecimal=False)
    cache_ok = True

    def bind_processor(self, dialect: Dialect) -> Any:
        # Bypass the NUMERIC float coercion so non-numeric text survives
        def process(value: Any) -> Any:
            return self.process_bind_param(value, dialect)

        return process

    def result_processor(self, dialect: Dialect, coltype: Any) -> Any:
        def process(value: Any) -> Any:
            return self.process_result_value(value, dialect)

        return process

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        number = to_number(value)
        if number is None:
            return str(value)
        return float(number)

    def process_result_value(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return None
        number = to_number(value)
        if number is None:
            return str(value)
        if number == number.to_integral_value():
            return str(int(number))
        return format(number.normalize(), "f")


class ProductRow(Base):
    """One row per product.

    Attributes:
        id: Upstream handle (stable slug).
        sku: Upstream product id.
        title: Product title.
        vendor: Vendor name.
        price: First variant price.
        list_price: Compare-at price, NULL when not on sale.
        options: JSON list of option axes.
        variants: JSON list of variants.
        images: JSON list of images.
        ground_clearance: Specification value.
        weight_capacity: Specification value.
        turning_radius: Specification value.
        range: Specification value (travel range).
        max_speed: Specification value.
        wheels: Specification value.
        published_at_unix_ms: Publication time.
        sales_rank: Best-selling rank, 0 = best.
        description_html: Rich-text description.
        model: Model classification.
        product_type: Product type classification.
        model_image: Model image URL.
        vendor_filter: Brand filter tag.
    """

    __tablename__ = "product"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    sku: Mapped[str] = mapped_column(String, nullable=False, default="")
    title: Mapped[str] = mapped_column(String, nullable=False)
    vendor: Mapped[str] = mapped_column(String, nullable=False)
    price: Mapped[str] = mapped_column(DecimalString, nullable=False)
    list_price: Mapped[str | None] = mapped_column(DecimalString, nullable=True)
    options: Mapped[str] = mapped_column(Text, nullable=False)
    variants: Mapped[str] = mapped_column(Text, nullable=False)
    images: Mapped[str] = mapped_column(Text, nullable=False)
    ground_clearance: Mapped[str | None] = mapped_column(DecimalString, nullable=True)
    weight_capacity: Mapped[str | None] = mapped_column(DecimalString, nullable=True)
    turning_radius: Mapped[str | None] = mapped_column(DecimalString, nullable=True)
    range: Mapped[str | None] = mapped_column(DecimalString, nullable=True)
    max_speed: Mapped[str | None] = mapped_column(DecimalString, nullable=True)
    wheels: Mapped[str | None] = mapped_column(DecimalString, nullable=True)
    published_at_unix_ms: Mapped[int] = mapped_column(Integer, nullable=False)
    sales_rank: Mapped[int] = mapped_column(Integer, nullable=False)
    description_html: Mapped[str | None] = mapped_column(Text, nullable=True)
    model: Mapped[str | None] = mapped_column(String, nullable=True)
    product_type: Mapped[str | None] = mapped_column(String, nullable=True)
    model_image: Mapped[str | None] = mapped_column(String, nullable=True)
    vendor_filter: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        Index("ix_product_title", "title"),
        Index("ix_product_vendor", "vendor"),
        Index("ix_product_price", "price"),
        Index("ix_product_ground_clearance", "ground_clearance"),
        Index("ix_product_weight_capacity", "weight_capacity"),
        Index("ix_product_turning_radius", "turning_radius"),
        Index("ix_product_range", "range"),
        Index("ix_product_wheels", "wheels"),
        Index("ix_product_max_speed", "max_speed"),
        Index("ix_product_published_at_unix_ms", "published_at_unix_ms"),
        Index("ix_product_sales_rank", "sales_rank"),
        {"sqlite_with_rowid": False},
    )

    def __repr__(self) -> str:
        """String representation."""
        return f"<ProductRow(id={self.id}, title={self.title[:30]})>"


class CategoryRow(Base):
    """Category (upstream collection)."""

    __tablename__ = "category"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    title: Mapped[str] = mapped_column(String, nullable=False)

    __table_args__ = ({"sqlite_with_rowid": False},)


class ProductCategoryRow(Base):
    """Product-category junction.

    ``position`` keeps the upstream order of a product's categories.
    """

    __tablename__ = "product_category"

    product_id: Mapped[str] = mapped_column(
        String, ForeignKey("product.id"), primary_key=True
    )
    category_id: Mapped[str] = mapped_column(
        String, ForeignKey("category.id"), primary_key=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        Index("ix_product_category_category_id", "category_id"),
        {"sqlite_with_rowid": False},
    )


class ColorRow(Base):
    """Color tag, keyed by color then product for facet lookups."""

    __tablename__ = "color"

    color: Mapped[str] = mapped_column(String, primary_key=True)
    product_id: Mapped[str] = mapped_column(
        String, ForeignKey("product.id"), primary_key=True
    )

    __table_args__ = (
        Index("ix_color_product_id", "product_id"),
        {"sqlite_with_rowid": False},
    )
