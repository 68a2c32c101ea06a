"""Tests for catalog synchronization."""

import asyncio
import sqlite3
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import Any

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.catalog.models import CategoryRow, ColorRow, ProductCategoryRow, ProductRow
from storefront.catalog.repository import CatalogRepository
from storefront.catalog.sync import CatalogSynchronizer, product_to_row
from storefront.domain.entities import Product
from storefront.domain.exceptions import StorageFatalError, UpstreamDataError
from storefront.domain.value_objects import ProductCategory, ProductSpecifications
from storefront.infrastructure.database import CatalogStore
from storefront.infrastructure.shopify import parse_specifications

Seed = Callable[..., Awaitable[Any]]


class UpstreamFailure(Exception):
    """Simulated upstream failure."""


async def failing_stream(products: list[Product], fail_after: int) -> AsyncIterator[Product]:
    """Yield some products, then fail."""
    for index, product in enumerate(products):
        if index == fail_after:
            raise UpstreamFailure("connection reset")
        yield product


async def count_rows(store: CatalogStore, model: Any) -> int:
    async with store.session() as session:
        result = await session.execute(select(func.count()).select_from(model))
        return result.scalar_one()


class TestProductToRow:
    """Tests for product column mapping."""

    def test_maps_specifications_and_rank(self, make_product: Any) -> None:
        """Specification fields and the rank land in their columns."""
        product = make_product("p", price="12.50", list_price="15.00")
        row = product_to_row(product, 7)
        assert row["id"] == "p"
        assert row["price"] == "12.50"
        assert row["list_price"] == "15.00"
        assert row["sales_rank"] == 7
        assert row["range"] is None

    def test_blobs_are_json(self, make_product: Any) -> None:
        """Variants are serialized as JSON text."""
        row = product_to_row(make_product("p"), 0)
        assert row["variants"].startswith("[{")
        assert '"variantId"' in row["variants"]


class TestReplaceData:
    """Tests for the atomic replace-all."""

    @pytest.mark.asyncio
    async def test_replaces_previous_catalog(
        self, store: CatalogStore, seed: Seed, make_product: Any
    ) -> None:
        """A sync removes products missing from the new snapshot."""
        await seed([make_product("old-1"), make_product("old-2")])
        await seed([make_product("new-1")])

        repository = CatalogRepository(store)
        products = await repository.get_products_page("default", 10, 1)
        assert [p.id for p in products] == ["new-1"]
        assert await count_rows(store, CategoryRow) == 1

    @pytest.mark.asyncio
    async def test_result_counts(self, seed: Seed, make_product: Any) -> None:
        """Shared categories and repeated colors are written once."""
        shared = [("scooters", "Scooters"), ("travel", "Travel")]
        result = await seed(
            [
                make_product("a", categories=shared, colors=["Red", "Red", "Blue"]),
                make_product("b", categories=shared + [("scooters", "Scooters")], colors=["Red"]),
            ]
        )
        assert result.products == 2
        assert result.categories == 2
        assert result.colors == 3
        assert result.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_junction_rows_per_product(
        self, store: CatalogStore, seed: Seed, make_product: Any
    ) -> None:
        """Each product-category pair is stored once."""
        await seed(
            [
                make_product("a", categories=[("x", "X"), ("y", "Y"), ("x", "X")]),
                make_product("b", categories=[("y", "Y")]),
            ]
        )
        assert await count_rows(store, ProductCategoryRow) == 3
        assert await count_rows(store, ColorRow) == 0

    @pytest.mark.asyncio
    async def test_interrupted_sync_keeps_old_catalog(
        self, store: CatalogStore, seed: Seed, make_product: Any
    ) -> None:
        """A failure mid-stream rolls back the delete and the inserts."""
        original = [make_product("keep-1", colors=["Red"]), make_product("keep-2")]
        await seed(original)
        repository = CatalogRepository(store)
        before = await repository.get_products_page("default", 10, 1)

        synchronizer = CatalogSynchronizer(store, source=None)  # type: ignore[arg-type]
        replacement = [make_product("new-1"), make_product("new-2"), make_product("new-3")]
        with pytest.raises(UpstreamFailure):
            await synchronizer.replace_data(failing_stream(replacement, fail_after=2), {})

        after = await repository.get_products_page("default", 10, 1)
        assert after == before
        assert await count_rows(store, ProductRow) == 2
        assert await count_rows(store, ColorRow) == 1

    @pytest.mark.asyncio
    async def test_readers_see_old_snapshot_during_sync(
        self, store: CatalogStore, seed: Seed, make_product: Any
    ) -> None:
        """Reads issued while a sync is running see the pre-sync catalog."""
        await seed([make_product("old")])
        repository = CatalogRepository(store)
        seen: list[list[str]] = []

        async def stream() -> AsyncIterator[Product]:
            yield make_product("new-1")
            products = await repository.get_products_page("default", 10, 1)
            seen.append([p.id for p in products])
            yield make_product("new-2")

        synchronizer = CatalogSynchronizer(store, source=None)  # type: ignore[arg-type]
        await synchronizer.replace_data(stream(), {})

        assert seen == [["old"]]
        products = await repository.get_products_page("default", 10, 1)
        assert [p.id for p in products] == ["new-1", "new-2"]

    @pytest.mark.asyncio
    async def test_failed_commit_is_fatal_and_not_repeated(
        self,
        store: CatalogStore,
        seed: Seed,
        make_product: Any,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A COMMIT that fails is attempted once and the old catalog stays."""
        await seed([make_product("keep")])
        attempts = 0

        async def failing_commit(self: AsyncSession) -> None:
            nonlocal attempts
            attempts += 1
            raise OperationalError("COMMIT", {}, sqlite3.OperationalError("database is locked"))

        monkeypatch.setattr(AsyncSession, "commit", failing_commit)
        with pytest.raises(StorageFatalError) as exc_info:
            await seed([make_product("new")])
        monkeypatch.undo()

        assert attempts == 1
        assert exc_info.value.statement == "COMMIT"
        assert not exc_info.value.retries_exhausted
        products = await CatalogRepository(store).get_products_page("default", 10, 1)
        assert [p.id for p in products] == ["keep"]


class TestSpecificationValues:
    """Tests for tag-derived specification values."""

    @pytest.mark.asyncio
    async def test_non_numeric_tags_do_not_abort_sync(
        self, store: CatalogStore, seed: Seed, make_product: Any
    ) -> None:
        """Descriptive tags like "long-range" are ignored and the sync completes."""
        specifications = parse_specifications(
            ["long-range", "speed:fast", "range:15-20", "speed:8"]
        )
        result = await seed([make_product("a", specifications=specifications)])

        assert result.products == 1
        loaded = await CatalogRepository(store).get_product("a")
        assert loaded.specifications.range is None
        assert loaded.specifications.max_speed == "8"

    @pytest.mark.asyncio
    async def test_stored_text_reads_back_unchanged(
        self, store: CatalogStore, seed: Seed, make_product: Any
    ) -> None:
        """A non-numeric value in a numeric column is returned as text."""
        await seed(
            [
                make_product(
                    "a",
                    specifications=ProductSpecifications(range="long", wheels="4"),
                )
            ]
        )

        loaded = await CatalogRepository(store).get_product("a")
        assert loaded.specifications.range == "long"
        assert loaded.specifications.wheels == "4"


class TestUpstreamValidation:
    """Products that cannot be stored abort the whole sync."""

    @pytest.mark.asyncio
    async def test_missing_categories(
        self, store: CatalogStore, seed: Seed, make_product: Any
    ) -> None:
        """A product without loaded categories is an upstream error."""
        await seed([make_product("keep")])
        with pytest.raises(UpstreamDataError) as exc_info:
            await seed([make_product("ok"), make_product("bad", categories=None)])
        assert exc_info.value.product_id == "bad"
        assert await count_rows(store, ProductRow) == 1

    @pytest.mark.asyncio
    async def test_missing_variants(self, seed: Seed, make_product: Any) -> None:
        """A product without variants is an upstream error."""
        with pytest.raises(UpstreamDataError, match="variant"):
            await seed([make_product("bad", variants=[])])

    @pytest.mark.asyncio
    async def test_category_without_title(self, seed: Seed, make_product: Any) -> None:
        """Every category needs a title."""
        product = make_product("bad")
        product.categories = [ProductCategory(id="untitled", title=None)]  # type: ignore[arg-type]
        with pytest.raises(UpstreamDataError, match="untitled"):
            await seed([product])


class TestUpdateData:
    """Tests for the full update from a product source."""

    @pytest.mark.asyncio
    async def test_uses_source_ranks(
        self, store: CatalogStore, make_product: Any, make_source: Any
    ) -> None:
        """Sales ranks from the source drive best-selling order."""
        source = make_source(
            [make_product("a"), make_product("b"), make_product("c")],
            {"c": 0, "b": 1},
        )
        result = await CatalogSynchronizer(store, source).update_data()

        assert result.products == 3
        products = await CatalogRepository(store).get_products_page("bestSelling", 10, 1)
        assert [p.id for p in products] == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_concurrent_updates_serialized(
        self, store: CatalogStore, make_product: Any, make_source: Any
    ) -> None:
        """Overlapping updates on one synchronizer run one after another."""
        source = make_source([make_product(f"p{i}") for i in range(20)])
        synchronizer = CatalogSynchronizer(store, source)

        first, second = await asyncio.gather(
            synchronizer.update_data(), synchronizer.update_data()
        )

        assert first.products == second.products == 20
        assert await count_rows(store, ProductRow) == 20
