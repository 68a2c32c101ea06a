"""Database configuration and session management.

Provides the catalog store: an explicitly owned async SQLAlchemy
engine plus session factory, passed to the repository and the
synchronizer instead of a module-level global.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import structlog
from sqlalchemy import event, text
from sqlalchemy.engine import Result
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import Executable

from storefront.infrastructure.retry import RetryPolicy

logger = structlog.get_logger()

# Base class for models
Base = declarative_base()


def _configure_sqlite(engine: AsyncEngine) -> None:
    """Install SQLite connection hooks.

    The driver's implicit transaction handling is turned off so that
    BEGIN is emitted when SQLAlchemy starts a transaction, which keeps
    reads and writes of one session in one SQLite transaction.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN")


class CatalogStore:
    """Handle to the catalog database.

    Example usage:
        store = create_store("sqlite+aiosqlite:///data.sqlite")
        await store.create_tables()
        async with store.session() as session:
            result = await store.execute(session, select(ProductRow))
    """

    def __init__(
        self,
        engine: AsyncEngine,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        """Initialize store.

        Args:
            engine: Async SQLAlchemy engine.
            retry_policy: Policy applied to every statement.
        """
        self.engine = engine
        self.retry_policy = retry_policy or RetryPolicy()
        self.session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_tables(self) -> None:
        """Create database tables if they don't exist."""
        # Registers the tables on Base.metadata
        from storefront.catalog import models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Close all pooled connections."""
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Open a session for one read or write unit of work.

        Yields:
            AsyncSession; rolled back on error, closed on exit.
        """
        async with self.session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def execute(
        self,
        session: AsyncSession,
        statement: Executable,
        params: dict[str, Any] | None = None,
    ) -> Result[Any]:
        """Execute a statement under the retry policy.

        Args:
            session: Session to execute in.
            statement: SQLAlchemy statement.
            params: Optional execution parameters.

        Returns:
            Buffered result.
        """
        sql, bound = self.describe(statement)
        logger.debug("Executing SQL statement", sql=sql, params=bound)
        return await self.retry_policy.run(
            lambda: session.execute(statement, params),
            statement=sql,
            params=bound,
        )

    def describe(self, statement: Executable) -> tuple[str, list[Any]]:
        """Render a statement's SQL text and ordered bound parameters.

        Args:
            statement: SQLAlchemy statement.

        Returns:
            Tuple of (SQL text, positional parameter list).
        """
        compiled = statement.compile(dialect=self.engine.dialect)  # type: ignore[attr-defined]
        positiontup = getattr(compiled, "positiontup", None) or list(compiled.params)
        return str(compiled), [compiled.params.get(name) for name in positiontup]

    async def ping(self) -> bool:
        """Check database connectivity.

        Returns:
            True if a trivial query succeeds.
        """
        async with self.session() as session:
            result = await self.execute(session, text("SELECT 1"))
            return result.scalar_one() == 1


def create_store(
    database_url: str,
    echo: bool = False,
    retry_policy: RetryPolicy | None = None,
) -> CatalogStore:
    """Create a catalog store for a database URL.

    Args:
        database_url: SQLAlchemy async URL, e.g. ``sqlite+aiosqlite:///data.sqlite``.
        echo: Log SQL through SQLAlchemy's engine logger.
        retry_policy: Optional custom retry policy.

    Returns:
        CatalogStore instance.
    """
    engine = create_async_engine(database_url, echo=echo)
    if engine.dialect.name == "sqlite":
        _configure_sqlite(engine)
    return CatalogStore(engine, retry_policy=retry_policy)
