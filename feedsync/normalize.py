"""Text normalization shared by indexing and query matching.

Both sides must use exactly the same canonical form, otherwise a query
word can never meet the indexed word it was meant for.
"""

import re
import unicodedata
from typing import List

from bs4 import BeautifulSoup

from feedsync.config import (
    MAX_WORDS_PER_PRODUCT,
    MIN_INDEX_WORD_LENGTH,
    MIN_QUERY_WORD_LENGTH,
)

__all__ = [
    "normalize_text",
    "strip_html",
    "truncate",
    "extract_index_words",
    "extract_query_words",
]

# ASCII \w on purpose: anything outside [A-Za-z0-9_] that survives
# diacritic removal becomes a separator
_NON_WORD_RE = re.compile(r"[^\w\s]", re.ASCII)
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text) -> str:
    """Case-fold, strip diacritics, drop punctuation and collapse whitespace.

    >>> normalize_text("Šampón Nivea, 400ml!")
    'sampon nivea 400ml'
    """
    if text is None:
        return ""
    decomposed = unicodedata.normalize("NFD", str(text).lower())
    stripped = "".join(c for c in decomposed if unicodedata.category(c) != "Mn")
    stripped = _NON_WORD_RE.sub(" ", stripped)
    return _WHITESPACE_RE.sub(" ", stripped).strip()


def strip_html(raw) -> str:
    """Remove markup and entities, collapsing whitespace."""
    if not raw:
        return ""
    raw = str(raw)
    if "<" in raw or "&" in raw:
        raw = BeautifulSoup(raw, "html.parser").get_text(" ")
    # &nbsp; decodes to U+00A0, which \s also covers
    return _WHITESPACE_RE.sub(" ", raw).strip()


def truncate(text: str, max_chars: int) -> str:
    """Cut ``text`` to at most ``max_chars`` characters."""
    return text[:max_chars] if len(text) > max_chars else text


def extract_index_words(
    text: str,
    min_length: int = MIN_INDEX_WORD_LENGTH,
    max_words: int = MAX_WORDS_PER_PRODUCT,
) -> List[str]:
    """Distinct words of ``text`` worth indexing, in order of appearance.

    Words shorter than ``min_length`` are dropped, then only the first
    ``max_words`` tokens are kept, repeats included.
    """
    tokens = [w for w in normalize_text(text).split() if len(w) >= min_length][:max_words]
    return list(dict.fromkeys(tokens))


def extract_query_words(text: str, min_length: int = MIN_QUERY_WORD_LENGTH) -> List[str]:
    """Words of a user query used for matching (duplicates kept)."""
    return [w for w in normalize_text(text).split() if len(w) >= min_length]
