"""Tests for product and category endpoints."""

from fastapi.testclient import TestClient


def ids(response) -> list[str]:
    return [item["id"] for item in response.json()["items"]]


class TestListProducts:
    """Tests for GET /products."""

    def test_default_listing(self, client: TestClient) -> None:
        """Products are listed by id with page metadata."""
        response = client.get("/products")
        assert response.status_code == 200
        data = response.json()
        assert ids(response) == ["loose", "p10", "p20", "p30"]
        assert data["page"] == 1
        assert data["page_count"] == 1
        assert data["has_more"] is False

    def test_paging(self, client: TestClient) -> None:
        """Page size and number select a slice."""
        response = client.get("/products", params={"page_size": 3, "page": 2})
        data = response.json()
        assert ids(response) == ["p30"]
        assert data["page_count"] == 2

    def test_prices_have_two_decimals(self, client: TestClient) -> None:
        """Prices are rendered as two-decimal strings."""
        response = client.get("/products", params={"search": "p20"})
        item = response.json()["items"][0]
        assert item["price"] == {"usd_amount": "20.00"}
        assert item["list_price"] == {"usd_amount": "25.00"}
        assert item["on_sale"] is True
        assert item["categories"] is None

    def test_filters_combined(self, client: TestClient) -> None:
        """Repeated values OR together; different parameters AND together."""
        response = client.get(
            "/products",
            params=[
                ("category", "mobility"),
                ("vendor", "Acme"),
                ("vendor", "Pride"),
                ("max_speed", "5-"),
                ("order_by", "priceDescending"),
            ],
        )
        assert response.status_code == 200
        assert ids(response) == ["p30", "p20"]

    def test_color_filter(self, client: TestClient) -> None:
        """Color filtering matches any requested color."""
        response = client.get("/products", params=[("color", "Red"), ("color", "Green")])
        assert ids(response) == ["p10", "p20"]

    def test_price_ranges(self, client: TestClient) -> None:
        """Ranges accept open bounds."""
        response = client.get("/products", params=[("price", "-10"), ("price", "25-")])
        assert ids(response) == ["loose", "p10", "p30"]

    def test_best_selling(self, client: TestClient) -> None:
        """Ranked products come before unranked ones."""
        response = client.get("/products", params={"order_by": "bestSelling"})
        assert ids(response)[0] == "p30"

    def test_unknown_order_by(self, client: TestClient) -> None:
        """Unknown sort keys are rejected with the error envelope."""
        response = client.get("/products", params={"order_by": "random"})
        assert response.status_code == 422
        data = response.json()
        assert data["error_code"] == "INVALID_ORDER_BY"
        assert data["details"] == {"order_by": "random"}
        assert data["request_id"]

    def test_malformed_range(self, client: TestClient) -> None:
        """Ranges without a dash are rejected."""
        response = client.get("/products", params={"price": "10"})
        assert response.status_code == 422
        assert response.json()["error_code"] == "INVALID_FILTER"

    def test_non_numeric_bound(self, client: TestClient) -> None:
        """Range bounds must be numbers."""
        response = client.get("/products", params={"turning_radius": "tight-"})
        assert response.status_code == 422
        assert response.json()["details"]["field"] == "turning_radius"


class TestGetProduct:
    """Tests for GET /products/{id}."""

    def test_get_product(self, client: TestClient) -> None:
        """Product details include categories in order."""
        response = client.get("/products/p20")
        assert response.status_code == 200
        data = response.json()
        assert data["id"] == "p20"
        assert [c["id"] for c in data["categories"]] == ["mobility", "travel"]
        assert data["colors"] == ["Green"]
        assert data["specifications"]["max_speed"] == "6"

    def test_not_found(self, client: TestClient) -> None:
        """Unknown ids return 404 with the error envelope."""
        response = client.get("/products/missing")
        assert response.status_code == 404
        data = response.json()
        assert data["error_code"] == "PRODUCT_NOT_FOUND"
        assert data["details"] == {"product_id": "missing"}


class TestRelatedProducts:
    """Tests for GET /products/{id}/related."""

    def test_related_by_price(self, client: TestClient) -> None:
        """Related products share the primary category and are closest in price."""
        response = client.get("/products/p20/related", params={"count": 2})
        assert response.status_code == 200
        data = response.json()
        assert data["category"] == {"id": "mobility", "title": "Mobility"}
        assert ids(response) == ["p10", "p30"]

    def test_no_primary_category(self, client: TestClient) -> None:
        """Products outside the navigation have no related products."""
        response = client.get("/products/loose/related")
        assert response.status_code == 200
        assert response.json()["items"] == []


class TestCategories:
    """Tests for category endpoints."""

    def test_list_categories(self, client: TestClient) -> None:
        """The hierarchy is returned with filters in API form."""
        response = client.get("/categories")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        mobility = data["categories"][0]
        assert mobility["subcategories"][0]["id"] == "travel"
        assert mobility["supported_filters"]["price"] == [
            {"from": None, "to": "15"},
            {"from": "15", "to": None},
        ]

    def test_facets(self, client: TestClient) -> None:
        """Facets cover the category and its subcategories."""
        response = client.get("/categories/mobility/facets")
        assert response.status_code == 200
        data = response.json()
        assert data["product_count"] == 3
        assert data["vendors"] == ["Acme", "Pride"]
        assert data["colors"] == ["Blue", "Green", "Red"]
        assert data["supported_filters"]["wheels"] == ["3"]
        assert data["supported_filters"]["vendor"] is True
        assert data["supported_filters"]["color"] is True

    def test_facets_unknown_category(self, client: TestClient) -> None:
        """Unconfigured categories return 404."""
        response = client.get("/categories/unknown/facets")
        assert response.status_code == 404
        assert response.json()["error_code"] == "CATEGORY_NOT_FOUND"
