"""Domain exceptions.

All catalog-level errors. Each carries a human-readable message and a
details dictionary that is logged and returned to API clients.
"""

from typing import Any


class CatalogError(Exception):
    """Base class for all catalog exceptions.

    All catalog errors inherit from this class to allow catching
    catalog-specific errors at the API layer.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Initialize catalog error.

        Args:
            message: Human-readable error message.
            details: Optional dictionary with additional error context.
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


# ============================================================================
# Lookup Errors
# ============================================================================


class NotFoundError(CatalogError):
    """Raised when a single-entity lookup misses."""

    pass


class ProductNotFoundError(NotFoundError):
    """Raised when a product id is not in the catalog."""

    def __init__(self, product_id: str) -> None:
        """Initialize product not found error.

        Args:
            product_id: The missing product id.
        """
        super().__init__(
            f"Product {product_id} not found",
            details={"product_id": product_id},
        )


# ============================================================================
# Argument Errors
# ============================================================================


class InvalidArgumentError(CatalogError):
    """Raised when a caller supplies an unusable argument."""

    pass


class InvalidOrderByError(InvalidArgumentError):
    """Raised for an unknown sort key."""

    def __init__(self, order_by: str) -> None:
        """Initialize invalid order by error.

        Args:
            order_by: The rejected sort key.
        """
        super().__init__(
            f"Unknown order by key {order_by!r}",
            details={"order_by": order_by},
        )


class InvalidFilterError(InvalidArgumentError):
    """Raised for a malformed filter value."""

    def __init__(self, field: str, value: Any, reason: str) -> None:
        """Initialize invalid filter error.

        Args:
            field: Filter dimension name.
            value: The rejected value.
            reason: Explanation of why the value is invalid.
        """
        super().__init__(
            f"Invalid value {value!r} for filter {field}: {reason}",
            details={"field": field, "value": str(value), "reason": reason},
        )


# ============================================================================
# Upstream Errors
# ============================================================================


class UpstreamDataError(CatalogError):
    """Raised when the upstream product source returns unusable data."""

    def __init__(
        self,
        message: str,
        product_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize upstream data error.

        Args:
            message: Human-readable error message.
            product_id: Upstream product handle, when known.
            details: Optional additional context.
        """
        context = dict(details or {})
        if product_id is not None:
            context["product_id"] = product_id
        super().__init__(message, details=context)
        self.product_id = product_id


# ============================================================================
# Storage Errors
# ============================================================================


class StorageError(CatalogError):
    """Base class for storage failures."""

    def __init__(
        self,
        message: str,
        statement: str | None = None,
        params: Any = None,
    ) -> None:
        """Initialize storage error.

        Args:
            message: Human-readable error message.
            statement: SQL text that failed, when known.
            params: Bound parameters of the failed statement.
        """
        super().__init__(
            message,
            details={
                "statement": statement,
                "params": repr(params) if params is not None else None,
            },
        )
        self.statement = statement
        self.params = params


class StorageTransientError(StorageError):
    """Raised when the store is busy. Retried by the retry policy."""

    pass


class StorageFatalError(StorageError):
    """Raised for unrecoverable storage failures.

    Also raised once a busy condition outlasts every retry.
    """

    def __init__(
        self,
        message: str,
        statement: str | None = None,
        params: Any = None,
        retries_exhausted: bool = False,
    ) -> None:
        super().__init__(message, statement=statement, params=params)
        self.retries_exhausted = retries_exhausted
        self.details["retries_exhausted"] = retries_exhausted
