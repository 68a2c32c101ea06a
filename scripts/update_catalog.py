#!/usr/bin/env python3
"""Catalog update script.

Replaces the local catalog cache with a fresh snapshot of the upstream
Shopify store. The update is atomic: on failure the previous catalog
stays in place and the script exits with status 1.

Usage:
    python scripts/update_catalog.py
    python scripts/update_catalog.py --database-url sqlite+aiosqlite:///data.sqlite
    python scripts/update_catalog.py --interval 15
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import structlog

from storefront.catalog.sync import CatalogSynchronizer, SyncResult
from storefront.domain.exceptions import CatalogError
from storefront.infrastructure.config import settings
from storefront.infrastructure.database import create_store
from storefront.infrastructure.logging_config import configure_logging
from storefront.infrastructure.shopify import ShopifyDataSource

logger = structlog.get_logger()


async def update_once(synchronizer: CatalogSynchronizer) -> SyncResult | None:
    """Run one catalog update.

    Args:
        synchronizer: Synchronizer bound to the store and upstream.

    Returns:
        Update counts, or None if the update failed and was rolled back.
    """
    try:
        return await synchronizer.update_data()
    except CatalogError as e:
        logger.error("Catalog update failed", error=e.message, details=e.details)
        return None


async def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Replace the local catalog with the upstream product data",
    )
    parser.add_argument(
        "--database-url",
        default=settings.database_url,
        help=f"Catalog database URL (default: {settings.database_url})",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Repeat the update every N minutes instead of running once",
    )

    args = parser.parse_args()
    configure_logging(settings.log_level, json_output=not settings.debug)

    print("=" * 60)
    print("Storefront Catalog Updater")
    print("=" * 60)
    print(f"Store: {settings.shopify_store_domain}")
    print(f"Database: {args.database_url}")
    print()

    store = create_store(args.database_url)
    source = ShopifyDataSource.from_settings(settings)
    synchronizer = CatalogSynchronizer(store, source)

    try:
        print("Creating database tables...")
        await store.create_tables()
        print("Tables ready.")
        print()

        while True:
            result = await update_once(synchronizer)
            if result is None:
                print("  ✗ Update failed, previous catalog kept")
                if args.interval is None:
                    return 1
            else:
                print(f"  ✓ Products: {result.products}")
                print(f"  ✓ Categories: {result.categories}")
                print(f"  ✓ Colors: {result.colors}")
                print(f"  ✓ Duration: {result.duration_ms} ms")

            if args.interval is None:
                return 0

            logger.info("Waiting for next update", delay_minutes=args.interval)
            await asyncio.sleep(args.interval * 60)
    finally:
        await source.close()
        await store.dispose()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
