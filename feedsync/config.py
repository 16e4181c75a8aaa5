"""Configuration and constants for catalog sync."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

__all__ = [
    "PROJECT_ROOT",
    "HEADERS",
    "REQUEST_TIMEOUT",
    "MAX_FEED_BYTES",
    "MAX_RETRIES",
    "RETRY_BACKOFF_BASE",
    "MAX_RETRY_BACKOFF",
    "RETRY_STATUS_CODES",
    "PRODUCT_BATCH_SIZE",
    "FLUSH_EVERY_BATCHES",
    "INDEX_BATCH_SIZE",
    "MAX_DESCRIPTION_CHARS",
    "MIN_INDEX_WORD_LENGTH",
    "MAX_WORDS_PER_PRODUCT",
    "MIN_PRODUCTS_PER_WORD",
    "MAX_INDEXED_WORDS",
    "MIN_QUERY_WORD_LENGTH",
    "DEFAULT_CURRENCY",
    "STORE_BACKEND",
    "DB_PATH",
    "SYNC_LOCK_TTL",
    "ConfigError",
    "get_setting",
    "require_setting",
]

PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Load environment variables from .env at the repo root
load_dotenv(dotenv_path=PROJECT_ROOT / ".env")

# HTTP headers for feed download
HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "application/xml, text/xml, */*",
}

# Large feeds take a while to download
REQUEST_TIMEOUT = 60
MAX_FEED_BYTES = 100 * 1024 * 1024

# Retry settings with exponential backoff
MAX_RETRIES = 2
RETRY_BACKOFF_BASE = 2.0
MAX_RETRY_BACKOFF = 30.0
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}

# Store write batching
PRODUCT_BATCH_SIZE = 100
FLUSH_EVERY_BATCHES = 5
INDEX_BATCH_SIZE = 500

# Product normalization
MAX_DESCRIPTION_CHARS = 500
DEFAULT_CURRENCY = "EUR"

# Inverted index limits
MIN_INDEX_WORD_LENGTH = 3
MAX_WORDS_PER_PRODUCT = 50
MIN_PRODUCTS_PER_WORD = 2
MAX_INDEXED_WORDS = 10_000

# Query tokens may be shorter than indexed ones
MIN_QUERY_WORD_LENGTH = 2

# Storage
STORE_BACKEND = os.getenv("STORE_BACKEND", "sqlite").lower()
DB_PATH = os.getenv("DB_PATH", str(PROJECT_ROOT / "data" / "catalog.db"))

# Advisory lock against overlapping sync runs (seconds)
SYNC_LOCK_TTL = int(os.getenv("SYNC_LOCK_TTL", "900"))


class ConfigError(Exception):
    """Raised when a mandatory setting is missing."""
    pass


def get_setting(*names: str, default: Optional[str] = None) -> Optional[str]:
    """Return the first non-empty environment variable among ``names``."""
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return default


def require_setting(*names: str) -> str:
    """Like get_setting(), but raise ConfigError if none of ``names`` is set."""
    value = get_setting(*names)
    if not value:
        raise ConfigError(f"{' / '.join(names)} not configured")
    return value
