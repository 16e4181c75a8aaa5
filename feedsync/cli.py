"""Command-line interface for catalog sync."""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

# Add parent directory to path to allow imports when run as script
sys.path.insert(0, str(Path(__file__).parent.parent))

__all__ = ["main", "parse_args", "show_stats", "show_index_keys"]

from feedsync.config import DB_PATH, STORE_BACKEND, ConfigError
from feedsync.csv_utils import export_catalog_to_csv
from feedsync.logging_config import setup_logging
from feedsync.store import CatalogStore, StoreError, open_store
from feedsync.sync import run_sync

# Exit code for missing or invalid configuration
EXIT_CONFIG_ERROR = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Product feed sync: fetch, index and store the catalog",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Sync from FEED_URL in .env
  python -m feedsync.cli --sync

  # Sync a specific feed into a scratch database
  python -m feedsync.cli --sync --feed-url https://shop.example/feed.xml --db /tmp/catalog.db

  # Show catalog statistics
  python -m feedsync.cli --stats

  # Export the catalog to CSV
  python -m feedsync.cli --export-csv data/catalog.csv

  # Use the Redis store configured by REDIS_URL
  python -m feedsync.cli --backend redis --stats
        """,
    )

    # Sync
    parser.add_argument(
        "--sync",
        action="store_true",
        help="Fetch the feed and replace the catalog",
    )
    parser.add_argument(
        "--feed-url",
        metavar="URL",
        help="Feed URL (default: FEED_URL from environment)",
    )

    # Store options
    parser.add_argument(
        "--backend",
        choices=["sqlite", "redis"],
        default=STORE_BACKEND,
        help=f"Key-value backend (default: {STORE_BACKEND})",
    )
    parser.add_argument(
        "--db",
        default=DB_PATH,
        help=f"SQLite database path (default: {DB_PATH})",
    )

    # Export options
    parser.add_argument(
        "--export-csv",
        metavar="PATH",
        help="Export the catalog to a CSV file",
    )

    # Info commands
    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show catalog statistics and exit",
    )
    parser.add_argument(
        "--list-categories",
        action="store_true",
        help="List indexed categories with product counts and exit",
    )
    parser.add_argument(
        "--list-brands",
        action="store_true",
        help="List indexed brands with product counts and exit",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging",
    )

    return parser.parse_args(argv)


def show_stats(store: CatalogStore) -> None:
    """Display catalog statistics."""
    metadata = store.get_metadata()
    ids = store.get_all_ids()

    print(f"\n{'='*50}")
    print("Catalog statistics")
    print(f"{'='*50}")
    print(f"\nProducts (metadata): {metadata.count}")
    print(f"Products (id set):   {len(ids)}")
    print(f"Last update:         {metadata.last_update or 'never'}")
    print(f"\nIndexed words:       {len(store.get_word_index())}")
    print(f"Categories:          {len(store.get_category_index())}")
    print(f"Brands:              {len(store.get_brand_index())}")
    print()


def show_index_keys(index: Dict[str, List[str]], label: str) -> None:
    """Print index keys sorted by product count, largest first."""
    if not index:
        print(f"No {label} indexed yet. Run --sync first.")
        return
    print(f"{label.capitalize()} ({len(index)}):")
    for name, ids in sorted(index.items(), key=lambda item: (-len(item[1]), item[0])):
        print(f"  {name}: {len(ids)}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI."""
    args = parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    try:
        store = open_store(backend=args.backend, db_path=args.db)

        if args.stats:
            show_stats(store)
            return 0

        if args.list_categories:
            show_index_keys(store.get_category_index(), "categories")
            return 0

        if args.list_brands:
            show_index_keys(store.get_brand_index(), "brands")
            return 0

        if args.export_csv:
            export_catalog_to_csv(store, args.export_csv)
            return 0

        if args.sync:
            result = run_sync(store, feed_url=args.feed_url, source="manual")
            if result.success:
                print(f"\nSynced {result.product_count} products in {result.duration:.2f}s")
                print(f"Index: {result.index}")
                if result.warnings:
                    print(f"Warnings: {result.warnings} (see logs)")
                return 0
            print(f"\nSync failed: {result.error}")
            if result.error_type == "ConfigError":
                return EXIT_CONFIG_ERROR
            return 1
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR
    except StoreError as e:
        print(f"Store error: {e}")
        return 1

    print("Nothing to do. Use --sync, --stats, --list-categories, --list-brands or --export-csv.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
