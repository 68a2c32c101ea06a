"""Shopify Storefront API product source.

Fetches the product corpus and the best-selling ranking through the
Storefront GraphQL API, following cursor pagination, and converts
upstream nodes into catalog Products.
"""

import re
from collections.abc import AsyncIterator
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx
import structlog

from storefront.domain.entities import Product, ProductVariant
from storefront.domain.exceptions import UpstreamDataError
from storefront.domain.value_objects import (
    ProductCategory,
    ProductColor,
    ProductImage,
    ProductOption,
    ProductSpecifications,
    ProductVendor,
    SelectedOption,
    UsdPrice,
)
from storefront.infrastructure.config import Settings, settings

logger = structlog.get_logger()


PRODUCTS_QUERY = """
query Products($first: Int!, $cursor: String) {
  products(first: $first, after: $cursor) {
    pageInfo { hasNextPage }
    edges {
      cursor
      node {
        id
        handle
        title
        vendor
        publishedAt
        descriptionHtml
        tags
        options { name values }
        metafields(identifiers: [
          {namespace: "custom", key: "model"},
          {namespace: "custom", key: "product_type"},
          {namespace: "custom", key: "brand"},
          {namespace: "custom", key: "model_image"}
        ]) { key value }
        collections(first: 20) { edges { node { handle title } } }
        media(first: 50) { edges { node { previewImage { url altText } } } }
        variants(first: 100) {
          edges {
            node {
              id
              price { amount currencyCode }
              compareAtPrice { amount currencyCode }
              selectedOptions { name value }
            }
          }
        }
      }
    }
  }
}
"""

BEST_SELLING_QUERY = """
query BestSellingProducts($cursor: String) {
  products(first: 250, after: $cursor, sortKey: BEST_SELLING) {
    pageInfo { hasNextPage }
    edges { cursor node { handle } }
  }
}
"""

# Specification tag keys, e.g. "speed:8" or "8-speed"
_SPEC_TAG_KEYS = {
    "groundclearance": "ground_clearance",
    "weightcapacity": "weight_capacity",
    "turningradius": "turning_radius",
    "range": "range",
    "speed": "max_speed",
    "wheel": "wheels",
}


# ============================================================================
# Parsing
# ============================================================================


def to_price(money: dict[str, Any] | None, product_id: str) -> UsdPrice | None:
    """Convert a MoneyV2 object to a USD price.

    Args:
        money: Upstream money object, or None.
        product_id: Product handle for error context.

    Returns:
        UsdPrice, or None when no money object was given.

    Raises:
        UpstreamDataError: On a non-USD currency or malformed amount.
    """
    if not money:
        return None

    currency = money.get("currencyCode")
    if currency != "USD":
        raise UpstreamDataError(
            f'Unexpected currency code "{currency}", expected "USD"',
            product_id=product_id,
        )

    amount = str(money.get("amount", ""))
    try:
        Decimal(amount)
    except InvalidOperation:
        raise UpstreamDataError(
            f"Malformed price amount {amount!r}", product_id=product_id
        ) from None
    return UsdPrice(amount)


def is_number(text: str) -> bool:
    """Check whether text is a finite decimal number."""
    try:
        return Decimal(text.strip()).is_finite()
    except InvalidOperation:
        return False


def parse_specifications(tags: list[str]) -> ProductSpecifications:
    """Read specifications from ``key:value`` or ``value-key`` tags.

    Only numeric values count; tags such as "long-range" are ignored.
    """
    parsed: dict[str, str] = {}
    for tag in tags:
        if ":" in tag:
            parts = tag.split(":")
        elif "-" in tag:
            parts = tag.split("-")[::-1]
        else:
            continue
        if len(parts) == 2 and is_number(parts[1]):
            parsed[parts[0]] = parts[1].strip()

    return ProductSpecifications(
        **{field: parsed.get(key) for key, field in _SPEC_TAG_KEYS.items()}
    )


def parse_colors(options: list[dict[str, Any]]) -> list[ProductColor]:
    """Take colors from the "Color" option, capitalizing each word."""
    for option in options:
        if option["name"].lower() == "color":
            return [
                ProductColor(" ".join(word.capitalize() for word in re.split(r"\s", value)))
                for value in option["values"]
            ]
    return []


def parse_options(options: list[dict[str, Any]]) -> list[ProductOption]:
    """Convert option axes, dropping Shopify's placeholder "Title" axis."""
    return [
        ProductOption(option["name"], tuple(option["values"]))
        for option in options
        if option["name"] != "Title"
    ]


def is_hidden_product(node: dict[str, Any]) -> bool:
    """Check for helper products created by the product options app."""
    description = (node.get("descriptionHtml") or "").lower()
    return "hidden product" in description and "product options application" in description


def parse_published_at(value: Any, product_id: str) -> int:
    """Convert an ISO timestamp or unix milliseconds to unix milliseconds."""
    if isinstance(value, int):
        return value
    try:
        return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp() * 1000)
    except ValueError:
        raise UpstreamDataError(
            f"Malformed publishedAt {value!r}", product_id=product_id
        ) from None


def node_to_product(node: dict[str, Any]) -> Product:
    """Convert an upstream product node to a Product.

    Args:
        node: GraphQL product node.

    Returns:
        Product with categories populated.

    Raises:
        UpstreamDataError: On missing required fields, bad prices or
            a node that does not have the expected shape.
    """
    try:
        return _convert_node(node)
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        handle = node.get("handle") if isinstance(node, dict) else None
        raise UpstreamDataError(
            f"Malformed product node: {type(e).__name__} {e}",
            product_id=handle,
        ) from e


def _convert_node(node: dict[str, Any]) -> Product:
    handle = node.get("handle")
    if not handle:
        raise UpstreamDataError("Product is missing its handle", details={"sku": node.get("id")})

    variant_nodes = [edge["node"] for edge in node.get("variants", {}).get("edges", [])]
    if not variant_nodes:
        raise UpstreamDataError(
            f"Expected at least one variant for product {node.get('title')} {handle}, "
            "but there were none",
            product_id=handle,
        )

    first_variant = variant_nodes[0]
    price = to_price(first_variant.get("price"), handle)
    if price is None:
        raise UpstreamDataError("First variant has no price", product_id=handle)

    variants = []
    for variant in variant_nodes:
        variant_price = to_price(variant.get("price"), handle)
        if variant_price is None:
            raise UpstreamDataError(
                f"Variant {variant.get('id')} has no price", product_id=handle
            )
        variants.append(
            ProductVariant(
                variant_id=variant["id"],
                price=variant_price,
                selected_options=tuple(
                    SelectedOption(o["name"], o["value"])
                    for o in variant.get("selectedOptions", [])
                ),
            )
        )

    metafields = {
        m["key"]: m.get("value") or ""
        for m in node.get("metafields") or []
        if m is not None
    }
    options = node.get("options", [])

    images = []
    for edge in node.get("media", {}).get("edges", []):
        preview = edge["node"].get("previewImage") or {}
        if preview.get("url"):
            images.append(ProductImage(preview["url"], preview.get("altText") or ""))

    return Product(
        id=handle,
        sku=node.get("id", ""),
        title=node.get("title", ""),
        vendor=ProductVendor(node.get("vendor", "")),
        description_html=node.get("descriptionHtml") or "",
        price=price,
        list_price=to_price(first_variant.get("compareAtPrice"), handle),
        options=parse_options(options),
        variants=variants,
        colors=parse_colors(options),
        images=images,
        specifications=parse_specifications(node.get("tags", [])),
        categories=[
            ProductCategory(id=edge["node"]["handle"], title=edge["node"]["title"])
            for edge in node.get("collections", {}).get("edges", [])
        ],
        published_at_ms=parse_published_at(node.get("publishedAt"), handle),
        model=metafields.get("model", ""),
        product_type=metafields.get("product_type", ""),
        model_image=metafields.get("model_image", ""),
        vendor_filter=metafields.get("brand", ""),
    )


def read_connection(data: dict[str, Any]) -> tuple[list[dict[str, Any]], bool]:
    """Take the edges and hasNextPage flag from a ``products`` connection.

    Raises:
        UpstreamDataError: When the connection is missing or malformed.
    """
    connection = data.get("products")
    if not isinstance(connection, dict):
        raise UpstreamDataError("Upstream response has no products connection")

    edges = connection.get("edges")
    if not isinstance(edges, list) or not all(isinstance(e, dict) for e in edges):
        raise UpstreamDataError("Upstream products connection has malformed edges")

    page_info = connection.get("pageInfo") or {}
    return edges, bool(page_info.get("hasNextPage"))


# ============================================================================
# Data Source
# ============================================================================


class ShopifyDataSource:
    """Paginated product source backed by the Shopify Storefront API.

    Example usage:
        source = ShopifyDataSource.from_settings(settings)
        ranks = await source.get_sales_ranks()
        async for product in source.get_products():
            ...
        await source.close()
    """

    def __init__(
        self,
        store_domain: str,
        access_token: str,
        api_version: str = "2023-01",
        page_size: int = 100,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize data source.

        Args:
            store_domain: Shop domain, e.g. ``shop.myshopify.com``.
            access_token: Storefront API access token.
            api_version: Storefront API version.
            page_size: Products per upstream page.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport (for tests).
        """
        self.endpoint = f"https://{store_domain}/api/{api_version}/graphql.json"
        self.page_size = page_size
        self._client = httpx.AsyncClient(
            timeout=timeout,
            transport=transport,
            headers={
                "X-Shopify-Storefront-Access-Token": access_token,
                "Content-Type": "application/json",
            },
        )

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "ShopifyDataSource":
        """Create a data source from application settings."""
        return cls(
            store_domain=config.shopify_store_domain,
            access_token=config.shopify_storefront_token,
            api_version=config.shopify_api_version,
            page_size=config.upstream_page_size,
            timeout=config.upstream_timeout,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def get_products(self) -> AsyncIterator[Product]:
        """Yield every upstream product, one page fetch at a time.

        Yields:
            Products with categories populated.

        Raises:
            UpstreamDataError: On request failure or an unusable product.
        """
        cursor: str | None = None
        page = 0
        while True:
            data = await self._execute(
                PRODUCTS_QUERY, {"first": self.page_size, "cursor": cursor}
            )
            edges, has_next_page = read_connection(data)
            page += 1
            logger.info("Fetched upstream product page", page=page, products=len(edges))

            for edge in edges:
                node = edge.get("node")
                if not isinstance(node, dict):
                    raise UpstreamDataError("Product edge has no node", details={"page": page})
                if is_hidden_product(node):
                    continue
                yield node_to_product(node)

            if not edges or not has_next_page:
                break
            cursor = edges[-1].get("cursor")

    async def get_sales_ranks(self) -> dict[str, int]:
        """Rank every product by best-selling order.

        Returns:
            Product handle to rank, 0 being the best seller.
        """
        ranks: dict[str, int] = {}
        cursor: str | None = None
        while True:
            data = await self._execute(BEST_SELLING_QUERY, {"cursor": cursor})
            edges, has_next_page = read_connection(data)
            for edge in edges:
                handle = (edge.get("node") or {}).get("handle")
                if not handle:
                    raise UpstreamDataError(
                        "Best-selling edge has no product handle",
                        details={"rank": len(ranks)},
                    )
                ranks[handle] = len(ranks)

            if not edges or not has_next_page:
                break
            cursor = edges[-1].get("cursor")
        return ranks

    async def _execute(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.post(
                self.endpoint,
                json={"query": query, "variables": variables},
            )
        except httpx.RequestError as e:
            logger.error("Upstream request failed", endpoint=self.endpoint, error=str(e))
            raise UpstreamDataError(f"Request failed: {e}") from e

        if response.status_code != 200:
            raise UpstreamDataError(
                f"Upstream returned HTTP {response.status_code}",
                details={"status_code": response.status_code, "body": response.text[:500]},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise UpstreamDataError(
                "Upstream returned a non-JSON response",
                details={"body": response.text[:500]},
            ) from e
        if not isinstance(payload, dict):
            raise UpstreamDataError("Upstream response is not a JSON object")

        if payload.get("errors"):
            raise UpstreamDataError(
                "Upstream GraphQL query failed",
                details={"errors": payload["errors"]},
            )
        data = payload.get("data")
        if not isinstance(data, dict):
            raise UpstreamDataError("Upstream response has no data")
        return data
