"""URL validation and sanitization for feed sources and product links."""

import re
from typing import Optional
from urllib.parse import urlparse

__all__ = [
    "URLValidationError",
    "sanitize_url",
    "validate_feed_url",
    "clean_product_url",
]


class URLValidationError(Exception):
    """Raised when URL validation fails."""
    pass


# Dangerous URL schemes to reject
DANGEROUS_SCHEMES = {"javascript", "data", "vbscript", "file"}

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")


def sanitize_url(url: str) -> str:
    """Strip whitespace, control characters and encoded null bytes."""
    if not url:
        return ""
    url = _CONTROL_CHARS_RE.sub("", str(url).strip())
    return url.replace("%00", "")


def validate_feed_url(url: str) -> str:
    """Validate the feed location before downloading it.

    Args:
        url: Feed URL

    Returns:
        Sanitized URL

    Raises:
        URLValidationError: If the URL is empty, unparsable or not http(s)
    """
    if not url:
        raise URLValidationError("URL is empty")

    url = sanitize_url(url)
    try:
        parsed = urlparse(url)
    except ValueError as e:
        raise URLValidationError(f"Failed to parse URL: {e}") from e

    scheme = parsed.scheme.lower()
    if scheme in DANGEROUS_SCHEMES:
        raise URLValidationError(f"Dangerous URL scheme: {scheme}")
    if scheme not in ("http", "https"):
        raise URLValidationError(f"Invalid URL scheme: {scheme or '(none)'}")
    if not parsed.netloc:
        raise URLValidationError("URL has no domain")

    return url


def clean_product_url(url: Optional[str]) -> Optional[str]:
    """Sanitize an optional product/image link taken from the feed.

    Links with a dangerous scheme become None; protocol-relative links
    get https.
    """
    if not url:
        return None
    url = sanitize_url(url)
    if not url:
        return None
    scheme = url.split(":", 1)[0].lower() if ":" in url else ""
    if scheme in DANGEROUS_SCHEMES:
        return None
    if url.startswith("//"):
        return f"https:{url}"
    return url
