"""Retry policy for transient storage contention.

SQLite reports SQLITE_BUSY when another connection holds the write
lock. Statements hitting that condition are retried on a fixed backoff
schedule; every other storage failure is fatal immediately.
"""

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, TypeVar

import structlog
from sqlalchemy.exc import DBAPIError, SQLAlchemyError

from storefront.domain.exceptions import StorageFatalError, StorageTransientError

logger = structlog.get_logger()

T = TypeVar("T")

# Seconds to wait before each retry: 8 retries after the first attempt
DEFAULT_BACKOFF_DELAYS: tuple[float, ...] = (0.01, 0.1, 0.5, 1.0, 2.0, 3.0, 4.0, 5.0)

_BUSY_MESSAGES = (
    "database is locked",
    "database is busy",
    "database table is locked",
)


def is_busy_error(error: BaseException) -> bool:
    """Check whether a database error is a "store busy" condition.

    Args:
        error: Exception raised by SQLAlchemy or the DBAPI driver.

    Returns:
        True if the statement may succeed when retried.
    """
    orig = getattr(error, "orig", None) or error
    error_name = getattr(orig, "sqlite_errorname", None)
    if error_name:
        return error_name.startswith(("SQLITE_BUSY", "SQLITE_LOCKED"))
    message = str(orig).lower()
    return any(text in message for text in _BUSY_MESSAGES)


class RetryPolicy:
    """Fixed-schedule retry wrapper for storage operations.

    Example usage:
        policy = RetryPolicy()
        result = await policy.run(
            lambda: session.execute(stmt),
            statement=str(stmt),
        )
    """

    def __init__(
        self,
        delays: Sequence[float] = DEFAULT_BACKOFF_DELAYS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        """Initialize retry policy.

        Args:
            delays: Wait before each retry, in seconds. One retry per entry.
            sleep: Async sleep function (injectable for tests).
        """
        self.delays = tuple(delays)
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        """Total attempts including the first one."""
        return len(self.delays) + 1

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        statement: str | None = None,
        params: Any = None,
    ) -> T:
        """Run an operation, retrying while the store is busy.

        Args:
            operation: Zero-argument coroutine factory; called once per attempt.
            statement: SQL text for logging and error context.
            params: Bound parameters for logging and error context.

        Returns:
            Result of the operation.

        Raises:
            StorageFatalError: On a non-transient failure, or when the
                store is still busy after the last retry.
        """
        for attempt in range(self.max_attempts):
            try:
                return await self._attempt(operation, statement, params)
            except StorageTransientError as e:
                if attempt >= len(self.delays):
                    logger.error(
                        "Store busy, retries exhausted",
                        attempts=self.max_attempts,
                        sql=statement,
                        params=params,
                    )
                    raise StorageFatalError(
                        f"Store still busy after {self.max_attempts} attempts",
                        statement=statement,
                        params=params,
                        retries_exhausted=True,
                    ) from e

                delay = self.delays[attempt]
                logger.info(
                    "Store busy, retrying after delay",
                    delay=delay,
                    attempt=attempt + 1,
                )
                await self._sleep(delay)

        raise RuntimeError("Retry loop completed without success or exception")

    @staticmethod
    async def _attempt(
        operation: Callable[[], Awaitable[T]],
        statement: str | None,
        params: Any,
    ) -> T:
        try:
            return await operation()
        except DBAPIError as e:
            if is_busy_error(e):
                raise StorageTransientError(
                    str(e.orig), statement=statement, params=params
                ) from e
            logger.error(
                "Error while querying",
                sql=statement,
                params=params,
                error=str(e),
            )
            raise StorageFatalError(str(e), statement=statement, params=params) from e
        except SQLAlchemyError as e:
            logger.error(
                "Error while querying",
                sql=statement,
                params=params,
                error=str(e),
            )
            raise StorageFatalError(str(e), statement=statement, params=params) from e
