"""Product feed sync: feed ingestion, transformation, indexing and storage."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from feedsync.config import DB_PATH, STORE_BACKEND, ConfigError
from feedsync.feed import EmptyFeedError, FeedError, FetchError, ParseError, fetch_feed, parse_feed
from feedsync.indexer import build_index
from feedsync.models import CatalogMetadata, IndexBuildResult, Product, SyncResult, TransformWarning
from feedsync.normalize import normalize_text
from feedsync.store import CatalogStore, StoreError, SyncInProgressError, open_store
from feedsync.sync import run_sync, sync_catalog
from feedsync.transform import transform_record, transform_records

__all__ = [
    # Version
    "__version__",
    # Config
    "DB_PATH",
    "STORE_BACKEND",
    "ConfigError",
    # Models
    "Product",
    "TransformWarning",
    "IndexBuildResult",
    "CatalogMetadata",
    "SyncResult",
    # Errors
    "FeedError",
    "FetchError",
    "ParseError",
    "EmptyFeedError",
    "StoreError",
    "SyncInProgressError",
    # Core functions
    "normalize_text",
    "fetch_feed",
    "parse_feed",
    "transform_record",
    "transform_records",
    "build_index",
    "CatalogStore",
    "open_store",
    "sync_catalog",
    "run_sync",
]
