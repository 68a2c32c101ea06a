"""Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Database
    database_url: str = "sqlite+aiosqlite:///data.sqlite"

    # Upstream (Shopify Storefront API)
    shopify_store_domain: str = "example.myshopify.com"
    shopify_storefront_token: str = "dev-storefront-token"
    shopify_api_version: str = "2023-01"
    upstream_page_size: int = 100
    upstream_timeout: float = 30.0

    # Catalog
    supported_categories_path: str = "config/supported_categories.json"

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
