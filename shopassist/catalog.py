"""Shared catalog store for the web app.

The store is opened lazily from configuration (STORE_BACKEND, DB_PATH,
REDIS_URL) on first use and reused across requests.
"""

import logging
from typing import Optional

from feedsync.store import CatalogStore, open_store

__all__ = ["get_store", "set_store"]

logger = logging.getLogger(__name__)

_store: Optional[CatalogStore] = None


def get_store() -> CatalogStore:
    """Get or open the shared CatalogStore.

    Raises:
        ConfigError: If the configured backend cannot be opened
    """
    global _store
    if _store is None:
        _store = open_store()
        logger.info(f"Opened catalog store ({type(_store.kv).__name__})")
    return _store


def set_store(store: Optional[CatalogStore]) -> None:
    """Replace the shared store (None reopens from configuration on next use)."""
    global _store
    _store = store
