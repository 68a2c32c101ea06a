"""Tests for the storage retry policy and catalog store."""

import sqlite3

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError, OperationalError

from storefront.catalog.models import ProductRow
from storefront.domain.exceptions import StorageFatalError
from storefront.infrastructure.database import CatalogStore
from storefront.infrastructure.retry import DEFAULT_BACKOFF_DELAYS, RetryPolicy, is_busy_error


def busy_error(message: str = "database is locked") -> OperationalError:
    """Build the error SQLAlchemy raises for a locked SQLite database."""
    return OperationalError("INSERT INTO product ...", {}, sqlite3.OperationalError(message))


class FlakyOperation:
    """Operation that fails a fixed number of times before succeeding."""

    def __init__(self, failures: int, error_factory=busy_error) -> None:
        self.failures = failures
        self.error_factory = error_factory
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory()
        return "ok"


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by the policy under test."""
    return []


@pytest.fixture
def policy(sleeps: list[float]) -> RetryPolicy:
    """Default schedule recording its sleeps instead of sleeping."""

    async def record(delay: float) -> None:
        sleeps.append(delay)

    return RetryPolicy(sleep=record)


class TestIsBusyError:
    """Tests for busy-condition detection."""

    @pytest.mark.parametrize(
        "message",
        ["database is locked", "database table is locked", "Database is busy"],
    )
    def test_busy_messages(self, message: str) -> None:
        """Lock and busy messages are transient."""
        assert is_busy_error(busy_error(message))

    def test_error_name_takes_precedence(self) -> None:
        """The driver's error name is used when present."""
        error = busy_error("something odd")
        error.orig.sqlite_errorname = "SQLITE_BUSY_SNAPSHOT"
        assert is_busy_error(error)

        error = busy_error("database is locked")
        error.orig.sqlite_errorname = "SQLITE_CONSTRAINT_PRIMARYKEY"
        assert not is_busy_error(error)

    def test_other_errors_not_busy(self) -> None:
        """Schema errors are not transient."""
        assert not is_busy_error(busy_error("no such table: product"))


class TestRetryPolicy:
    """Tests for the fixed backoff schedule."""

    def test_default_schedule(self) -> None:
        """Eight retries after the first attempt."""
        assert DEFAULT_BACKOFF_DELAYS == (0.01, 0.1, 0.5, 1.0, 2.0, 3.0, 4.0, 5.0)
        assert RetryPolicy().max_attempts == 9

    @pytest.mark.asyncio
    async def test_success_without_retry(self, policy: RetryPolicy, sleeps: list[float]) -> None:
        """A successful operation runs once."""
        operation = FlakyOperation(failures=0)
        assert await policy.run(operation) == "ok"
        assert operation.calls == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_recovers_from_busy(self, policy: RetryPolicy, sleeps: list[float]) -> None:
        """Busy errors are retried following the schedule."""
        operation = FlakyOperation(failures=3)
        assert await policy.run(operation, statement="INSERT") == "ok"
        assert operation.calls == 4
        assert sleeps == [0.01, 0.1, 0.5]

    @pytest.mark.asyncio
    async def test_busy_on_last_retry_still_recovers(
        self, policy: RetryPolicy, sleeps: list[float]
    ) -> None:
        """Success on the ninth attempt is still a success."""
        operation = FlakyOperation(failures=8)
        assert await policy.run(operation) == "ok"
        assert operation.calls == 9
        assert sleeps == list(DEFAULT_BACKOFF_DELAYS)

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, policy: RetryPolicy, sleeps: list[float]) -> None:
        """A store busy on every attempt becomes a fatal error."""
        operation = FlakyOperation(failures=100)
        with pytest.raises(StorageFatalError) as exc_info:
            await policy.run(operation, statement="COMMIT", params=[1])

        assert operation.calls == 9
        assert sleeps == list(DEFAULT_BACKOFF_DELAYS)
        assert exc_info.value.retries_exhausted
        assert exc_info.value.statement == "COMMIT"
        assert exc_info.value.details["retries_exhausted"] is True

    @pytest.mark.asyncio
    async def test_non_busy_error_is_fatal_immediately(
        self, policy: RetryPolicy, sleeps: list[float]
    ) -> None:
        """Other database errors are not retried."""
        operation = FlakyOperation(
            failures=1,
            error_factory=lambda: IntegrityError(
                "INSERT", {}, sqlite3.IntegrityError("UNIQUE constraint failed")
            ),
        )
        with pytest.raises(StorageFatalError) as exc_info:
            await policy.run(operation, statement="INSERT")

        assert operation.calls == 1
        assert sleeps == []
        assert not exc_info.value.retries_exhausted
        assert isinstance(exc_info.value.__cause__, IntegrityError)

    @pytest.mark.asyncio
    async def test_non_database_errors_propagate(self, policy: RetryPolicy) -> None:
        """Errors outside the storage layer are left alone."""

        async def broken() -> None:
            raise ValueError("bug")

        with pytest.raises(ValueError, match="bug"):
            await policy.run(broken)

    @pytest.mark.asyncio
    async def test_custom_schedule(self, sleeps: list[float]) -> None:
        """A shorter schedule gives up sooner."""

        async def record(delay: float) -> None:
            sleeps.append(delay)

        operation = FlakyOperation(failures=100)
        with pytest.raises(StorageFatalError):
            await RetryPolicy(delays=(0.2,), sleep=record).run(operation)
        assert operation.calls == 2
        assert sleeps == [0.2]


class TestCatalogStore:
    """Tests for the store handle over a real database."""

    @pytest.mark.asyncio
    async def test_ping(self, store: CatalogStore) -> None:
        """A fresh store answers queries."""
        assert await store.ping()

    @pytest.mark.asyncio
    async def test_sql_failure_is_fatal_with_statement(self, store: CatalogStore) -> None:
        """Failing statements raise StorageFatalError with the SQL text."""
        async with store.session() as session:
            with pytest.raises(StorageFatalError) as exc_info:
                await store.execute(session, text("SELECT * FROM missing_table"))
        assert "missing_table" in exc_info.value.statement
        assert not exc_info.value.retries_exhausted

    def test_describe_orders_parameters(self, store: CatalogStore) -> None:
        """Statements render with positional parameters in order."""
        statement = select(ProductRow.id).where(
            ProductRow.vendor == "Acme", ProductRow.title == "Scooter"
        )
        sql, params = store.describe(statement)
        assert "?" in sql
        assert "Acme" not in sql
        assert params == ["Acme", "Scooter"]

    @pytest.mark.asyncio
    async def test_tables_are_without_rowid(self, store: CatalogStore) -> None:
        """Catalog tables have no implicit rowid."""
        async with store.session() as session:
            with pytest.raises(StorageFatalError, match="rowid"):
                await store.execute(session, text("SELECT rowid FROM product"))

    @pytest.mark.asyncio
    async def test_foreign_keys_enforced(self, store: CatalogStore) -> None:
        """Junction rows must reference existing products."""
        async with store.session() as session:
            with pytest.raises(StorageFatalError):
                await store.execute(
                    session,
                    text(
                        "INSERT INTO product_category (product_id, category_id, position) "
                        "VALUES ('ghost', 'nowhere', 0)"
                    ),
                )
