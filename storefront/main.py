"""Storefront catalog API main application module.

This module builds the FastAPI application and configures the catalog
store, middleware, routers, and startup/shutdown events.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse

from storefront.api.categories import router as categories_router
from storefront.api.health import router as health_router
from storefront.api.middleware import setup_middleware
from storefront.api.products import router as products_router
from storefront.domain.exceptions import (
    CatalogError,
    InvalidArgumentError,
    InvalidFilterError,
    InvalidOrderByError,
    NotFoundError,
    ProductNotFoundError,
    StorageFatalError,
)
from storefront.domain.supported_categories import SupportedCategories
from storefront.infrastructure.config import settings
from storefront.infrastructure.database import create_store
from storefront.infrastructure.logging_config import configure_logging

logger = structlog.get_logger()

_ERROR_CODES: dict[type[CatalogError], str] = {
    ProductNotFoundError: "PRODUCT_NOT_FOUND",
    InvalidOrderByError: "INVALID_ORDER_BY",
    InvalidFilterError: "INVALID_FILTER",
}


def load_supported_categories(path: str) -> SupportedCategories:
    """Load the category configuration, or an empty one if the file is missing."""
    if not Path(path).exists():
        logger.warning("Supported categories file not found", path=path)
        return SupportedCategories([])
    return SupportedCategories.from_file(path)


def _error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: dict | list,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error_code": error_code,
            "message": message,
            "details": details,
            "request_id": getattr(request.state, "request_id", None),
        },
    )


def create_app(
    database_url: str | None = None,
    supported_categories: SupportedCategories | None = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        database_url: Catalog database URL (defaults to settings).
        supported_categories: Category configuration (defaults to the
            file named in settings).

    Returns:
        Configured FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Create the catalog store on startup, dispose it on shutdown."""
        configure_logging(settings.log_level, json_output=not settings.debug)
        logger.info(
            "Starting storefront catalog API",
            version=settings.api_version,
            debug=settings.debug,
        )

        store = create_store(database_url or settings.database_url, echo=settings.debug)
        await store.create_tables()
        app.state.store = store
        app.state.supported_categories = (
            supported_categories
            if supported_categories is not None
            else load_supported_categories(settings.supported_categories_path)
        )

        yield

        logger.info("Shutting down storefront catalog API")
        await store.dispose()

    app = FastAPI(
        title="Storefront Catalog API",
        description="Read API over the local product catalog cache",
        version=settings.api_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    setup_middleware(app)

    app.include_router(health_router, tags=["Health"])
    app.include_router(products_router)
    app.include_router(categories_router)

    _register_exception_handlers(app)
    return app


# ============================================================================
# Custom Exception Handlers
# ============================================================================


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        """Handle lookups of missing entities."""
        return _error_response(
            request,
            status.HTTP_404_NOT_FOUND,
            _ERROR_CODES.get(type(exc), "NOT_FOUND"),
            exc.message,
            exc.details,
        )

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument_handler(
        request: Request, exc: InvalidArgumentError
    ) -> JSONResponse:
        """Handle unusable sort keys, filters and page requests."""
        return _error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            _ERROR_CODES.get(type(exc), "INVALID_ARGUMENT"),
            exc.message,
            exc.details,
        )

    @app.exception_handler(StorageFatalError)
    async def storage_error_handler(request: Request, exc: StorageFatalError) -> JSONResponse:
        """Handle storage failures; a store that stays busy is a 503."""
        logger.error(
            "Storage failure in handler",
            path=request.url.path,
            error=exc.message,
            retries_exhausted=exc.retries_exhausted,
        )
        if exc.retries_exhausted:
            return _error_response(
                request,
                status.HTTP_503_SERVICE_UNAVAILABLE,
                "STORE_BUSY",
                "The catalog is busy, try again later",
                {},
            )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "STORAGE_ERROR",
            "An internal error occurred",
            {},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        """Handle HTTP exceptions with consistent format."""
        detail = exc.detail
        if isinstance(detail, dict):
            error_code = detail.get("error_code", "ERROR")
            message = detail.get("message", str(detail))
            details = detail.get("details", {})
        else:
            error_code = "ERROR"
            message = str(detail)
            details = {}
        return _error_response(request, exc.status_code, error_code, message, details)

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle uncaught exceptions with consistent format."""
        logger.exception(
            "Unhandled exception in handler",
            path=request.url.path,
            method=request.method,
            error=str(exc),
        )
        return _error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An internal error occurred",
            {},
        )


app = create_app()
