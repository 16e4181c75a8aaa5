"""Sync orchestration: feed -> products -> indexes -> store."""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Union

import requests  # type: ignore[import-untyped]

from feedsync.config import ConfigError, require_setting
from feedsync.feed import EmptyFeedError, FeedError, FetchError, extract_records, fetch_feed, parse_feed
from feedsync.indexer import build_index
from feedsync.logging_config import get_logger, log_sync_event
from feedsync.models import SyncResult, TransformWarning
from feedsync.store import CatalogStore, StoreError, SyncInProgressError, open_store
from feedsync.transform import transform_records

__all__ = ["sync_catalog", "run_sync", "resolve_feed_url"]

logger = get_logger("sync")

# Cap on individually logged warnings per run; the rest are only counted
MAX_LOGGED_WARNINGS = 20


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def resolve_feed_url(feed_url: Optional[str] = None) -> str:
    """Explicit feed URL, else FEED_URL (or legacy XML_URL) from the environment.

    Raises:
        ConfigError: If no feed URL is configured
    """
    return feed_url or require_setting("FEED_URL", "XML_URL")


def _log_warnings(warnings: List[TransformWarning]) -> None:
    for warning in warnings[:MAX_LOGGED_WARNINGS]:
        log_sync_event("transform_warning", warning.to_dict())
    if len(warnings) > MAX_LOGGED_WARNINGS:
        logger.warning(f"  ... and {len(warnings) - MAX_LOGGED_WARNINGS} more transform warnings")


def sync_catalog(
    store: CatalogStore,
    feed_url: Optional[str] = None,
    source: str = "manual",
    document: Optional[Union[bytes, str]] = None,
    session: Optional[requests.Session] = None,
) -> SyncResult:
    """Replace the catalog with the current contents of the feed.

    Steps run in order and metadata is written only after products and
    all three indexes are stored. A sync failing partway leaves a mix
    of old and new keys with the previous metadata.

    Args:
        store: Target catalog store
        feed_url: Feed location (default: FEED_URL setting)
        source: "cron" or "manual"
        document: Pre-fetched feed document; skips the download
        session: Optional requests.Session for the download

    Returns:
        SyncResult for a successful run

    Raises:
        ConfigError: No feed URL configured
        FeedError: Fetch, parse or empty-feed failure
        StoreError: Store failure, including a held sync lock
    """
    start = time.monotonic()
    if document is None:
        feed_url = resolve_feed_url(feed_url)

    token = store.acquire_sync_lock()
    try:
        log_sync_event("sync_start", {"source": source, "feed_url": feed_url})

        if document is None:
            logger.info(f"Fetching feed from {feed_url}")
            document = fetch_feed(feed_url, session=session)
            log_sync_event("feed_fetched", {"bytes": len(document)})

        records = extract_records(parse_feed(document))
        if not records:
            raise EmptyFeedError("No products found in feed (unknown or empty feed structure)")
        log_sync_event("feed_parsed", {"records": len(records)})

        warnings: List[TransformWarning] = []
        products = transform_records(records, warnings)
        _log_warnings(warnings)
        logger.info(f"Transformed {len(products)} products ({len(warnings)} warnings)")

        index = build_index(products)

        count = store.replace_products(products)
        log_sync_event("products_saved", {"count": count})

        store.replace_indexes(index)
        log_sync_event("index_saved", index.summary())

        timestamp = _now_iso()
        store.write_metadata(count, timestamp)
    finally:
        try:
            store.release_sync_lock(token)
        except StoreError as e:
            # The lock expires after its TTL
            logger.warning(f"Could not release sync lock: {e}")

    result = SyncResult(
        success=True,
        source=source,
        product_count=count,
        duration=time.monotonic() - start,
        timestamp=timestamp,
        warnings=len(warnings),
        index=index.summary(),
    )
    log_sync_event("sync_complete", result.to_dict())
    return result


def run_sync(
    store: Optional[CatalogStore] = None,
    feed_url: Optional[str] = None,
    source: str = "manual",
    document: Optional[Union[bytes, str]] = None,
    session: Optional[requests.Session] = None,
) -> SyncResult:
    """Run a sync and report any failure in the returned SyncResult.

    Never raises. Fetch and store failures (including a held lock) are
    marked retryable; configuration and feed-content failures are not.
    """
    start = time.monotonic()
    try:
        if store is None:
            store = open_store()
        return sync_catalog(store, feed_url=feed_url, source=source, document=document, session=session)
    except (ConfigError, FeedError, StoreError) as e:
        retryable = isinstance(e, (FetchError, StoreError))
        if isinstance(e, SyncInProgressError):
            logger.warning(f"Sync skipped: {e}")
        else:
            logger.error(f"Sync failed ({type(e).__name__}): {e}")
        error, error_type = str(e), type(e).__name__
    except Exception as e:
        logger.exception(f"Unexpected sync failure: {e}")
        error, error_type, retryable = str(e), type(e).__name__, False

    result = SyncResult(
        success=False,
        source=source,
        duration=time.monotonic() - start,
        timestamp=_now_iso(),
        error=error,
        error_type=error_type,
        retryable=retryable,
    )
    log_sync_event("sync_failed", result.to_dict(), level=logging.ERROR)
    return result
