"""Feed download and parsing.

The catalog arrives as one XML document. Several shop platforms are
supported by trying known document shapes in order; the first shape that
yields records wins.
"""

import io
import random
import re
import time
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import requests  # type: ignore[import-untyped]

from feedsync.config import (
    HEADERS,
    MAX_FEED_BYTES,
    MAX_RETRIES,
    MAX_RETRY_BACKOFF,
    REQUEST_TIMEOUT,
    RETRY_BACKOFF_BASE,
    RETRY_STATUS_CODES,
)
from feedsync.logging_config import get_logger
from feedsync.url_validation import URLValidationError, validate_feed_url

__all__ = [
    "FeedError",
    "FetchError",
    "ParseError",
    "EmptyFeedError",
    "FEED_SHAPES",
    "create_session",
    "fetch_feed",
    "parse_feed",
    "extract_records",
]

logger = get_logger("feed")

RawRecord = Dict[str, Any]
ShapeExtractor = Callable[[Dict[str, Any]], Optional[List[RawRecord]]]


class FeedError(Exception):
    """Base class for feed failures that abort a sync run."""
    pass


class FetchError(FeedError):
    """Feed unreachable, non-2xx response or oversize payload."""
    pass


class ParseError(FeedError):
    """Feed document is not well-formed XML."""
    pass


class EmptyFeedError(FeedError):
    """Feed parsed, but no records were found in any known shape."""
    pass


# =============================================================================
# Download
# =============================================================================


def create_session() -> requests.Session:
    """Create a requests Session with the feed download headers."""
    session = requests.Session()
    session.headers.update(HEADERS)
    session.headers.setdefault("Accept-Encoding", "gzip, deflate")
    return session


def _backoff(attempt: int, reason: str) -> None:
    delay = min(RETRY_BACKOFF_BASE ** attempt, MAX_RETRY_BACKOFF) + random.uniform(0, 1)
    logger.warning(f"{reason}, backing off {delay:.1f}s (attempt {attempt + 1}/{MAX_RETRIES})")
    time.sleep(delay)


def _read_limited(resp: requests.Response, max_bytes: int) -> bytes:
    """Read a streamed response body, refusing anything over ``max_bytes``."""
    declared = resp.headers.get("Content-Length")
    if declared and declared.isdigit() and int(declared) > max_bytes:
        raise FetchError(f"Feed too large: {declared} bytes (limit {max_bytes})")

    buffer = io.BytesIO()
    total = 0
    try:
        for chunk in resp.iter_content(chunk_size=64 * 1024):
            if not chunk:
                continue
            total += len(chunk)
            if total > max_bytes:
                raise FetchError(f"Feed exceeds {max_bytes} bytes, download aborted")
            buffer.write(chunk)
    except requests.exceptions.RequestException as e:
        raise FetchError(f"Feed download interrupted: {e}") from e
    return buffer.getvalue()


def fetch_feed(
    url: str,
    timeout: float = REQUEST_TIMEOUT,
    max_bytes: int = MAX_FEED_BYTES,
    session: Optional[requests.Session] = None,
) -> bytes:
    """Download the raw feed document.

    Connection errors, timeouts and 429/5xx responses are retried with
    exponential backoff; any other non-2xx status fails immediately.

    Args:
        url: Feed URL
        timeout: Per-request timeout in seconds
        max_bytes: Maximum accepted payload size
        session: Optional requests.Session (mainly for tests)

    Returns:
        Raw document bytes

    Raises:
        FetchError: If the feed cannot be downloaded
    """
    try:
        url = validate_feed_url(url)
    except URLValidationError as e:
        raise FetchError(f"Invalid feed URL: {e}") from e

    sess = session or create_session()

    for attempt in range(MAX_RETRIES + 1):
        try:
            resp = sess.get(url, timeout=timeout, stream=True)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            if attempt < MAX_RETRIES:
                _backoff(attempt, f"{type(e).__name__} fetching feed")
                continue
            raise FetchError(f"Failed to fetch {url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise FetchError(f"Failed to fetch {url}: {e}") from e

        try:
            if resp.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                _backoff(attempt, f"Received {resp.status_code}")
                continue
            if not 200 <= resp.status_code < 300:
                raise FetchError(f"HTTP Error {resp.status_code}: {resp.reason} ({url})")
            return _read_limited(resp, max_bytes)
        finally:
            resp.close()

    # Every iteration either returns, raises or retries
    raise FetchError(f"Failed to fetch {url} after {MAX_RETRIES} retries")


# =============================================================================
# Parsing
# =============================================================================

_ENCODING_DECL_RE = re.compile(r"^(<\?xml[^>]*?)\s+encoding=([\"'])[^\"']*\2", re.IGNORECASE)


def _qualified_name(tag: str, prefixes: Dict[str, str]) -> str:
    """Turn ``{uri}local`` back into ``prefix:local`` (``g:price``)."""
    if not tag.startswith("{"):
        return tag
    uri, local = tag[1:].split("}", 1)
    prefix = prefixes.get(uri)
    return f"{prefix}:{local}" if prefix else local


def _element_to_value(elem: ET.Element, prefixes: Dict[str, str]) -> Union[str, Dict[str, Any]]:
    """Convert an element into plain Python data.

    Leaf elements without attributes become their stripped text. Anything
    else becomes a dict: attributes and children share one namespace,
    repeated keys collect into a list and mixed text goes under ``"_"``.
    """
    children = list(elem)
    text = (elem.text or "").strip()
    if not children and not elem.attrib:
        return text

    node: Dict[str, Any] = {}
    for name, value in elem.attrib.items():
        node[_qualified_name(name, prefixes)] = value
    for child in children:
        key = _qualified_name(child.tag, prefixes)
        value = _element_to_value(child, prefixes)
        if key not in node:
            node[key] = value
        elif isinstance(node[key], list):
            node[key].append(value)
        else:
            node[key] = [node[key], value]
    if text:
        node["_"] = text
    return node


def parse_feed(document: Union[bytes, str]) -> Dict[str, Any]:
    """Parse an XML feed into nested dicts keyed by the root tag.

    Namespaced tags keep their document prefix, so Google Merchant
    fields come out as ``g:id``, ``g:price`` and so on.

    Raises:
        ParseError: If the document is empty or not well-formed
    """
    if isinstance(document, str):
        # Already decoded; the declared encoding no longer applies
        document = _ENCODING_DECL_RE.sub(r"\1", document.lstrip("\ufeff \t\r\n")).encode("utf-8")
    if not document or not document.strip():
        raise ParseError("Feed document is empty")

    prefixes: Dict[str, str] = {}
    root: Optional[ET.Element] = None
    try:
        for event, item in ET.iterparse(io.BytesIO(document), events=("start", "start-ns")):
            if event == "start-ns":
                prefix, uri = item
                prefixes.setdefault(uri, prefix)
            elif root is None:
                root = item
    except ET.ParseError as e:
        raise ParseError(f"Malformed XML feed: {e}") from e

    if root is None:
        raise ParseError("Feed document has no root element")
    return {_qualified_name(root.tag, prefixes): _element_to_value(root, prefixes)}


def _as_records(value: Any) -> List[RawRecord]:
    items = value if isinstance(value, list) else [value]
    return [item for item in items if isinstance(item, dict)]


def _path_shape(*path: str) -> ShapeExtractor:
    """Extractor for records found at a fixed key path."""
    def extract(doc: Dict[str, Any]) -> Optional[List[RawRecord]]:
        node: Any = doc
        for key in path:
            if not isinstance(node, dict) or key not in node:
                return None
            node = node[key]
        records = _as_records(node)
        return records or None
    return extract


# Known document shapes, tried in order
FEED_SHAPES: List[Tuple[str, ShapeExtractor]] = [
    ("rss", _path_shape("rss", "channel", "item")),
    ("root", _path_shape("root", "product")),
    ("products", _path_shape("products", "product")),
    ("atom", _path_shape("feed", "entry")),
    ("heureka", _path_shape("SHOP", "SHOPITEM")),
]


def extract_records(
    doc: Dict[str, Any],
    shapes: Optional[List[Tuple[str, ShapeExtractor]]] = None,
) -> List[RawRecord]:
    """Return the raw product records of a parsed feed.

    An unknown shape yields an empty list; deciding that zero records is
    a failure is up to the caller.
    """
    for name, extractor in shapes or FEED_SHAPES:
        records = extractor(doc)
        if records is not None:
            logger.debug(f"Feed matched shape '{name}' with {len(records)} records")
            return records

    logger.warning(f"Unknown feed structure, top-level keys: {list(doc.keys())}")
    return []
