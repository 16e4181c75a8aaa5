"""Product retrieval over the inverted indexes.

Matching is a full scan of the word index: a query word matches an
indexed word when either contains the other. An exact match scores 10,
a partial one 5, and scores add up per product across all matches.

Read failures are logged and turn into empty results.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from feedsync.config import MIN_QUERY_WORD_LENGTH
from feedsync.models import CatalogMetadata, Product
from feedsync.normalize import extract_query_words, normalize_text
from feedsync.store import CatalogStore

from shopassist.catalog import get_store
from shopassist.config import SEARCH_LIMIT

__all__ = [
    "EXACT_MATCH_SCORE",
    "PARTIAL_MATCH_SCORE",
    "ScoredProduct",
    "SearchResult",
    "score_products",
    "search_products",
    "get_products_by_category",
    "get_products_by_brand",
    "get_all_categories",
    "get_all_brands",
    "get_catalog_metadata",
    "get_random_products",
    "get_discounted_products",
    "get_stats",
]

logger = logging.getLogger(__name__)

EXACT_MATCH_SCORE = 10
PARTIAL_MATCH_SCORE = 5

# Products fetched per round trip when scanning the whole catalog
_SCAN_BATCH_SIZE = 500


@dataclass
class ScoredProduct:
    """A retrieved product with its relevance score."""

    product: Product
    score: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {**self.product.to_dict(), "score": self.score}


@dataclass
class SearchResult:
    """Ranked products for a query plus the words used to match them."""

    query: str
    terms: List[str] = field(default_factory=list)
    products: List[ScoredProduct] = field(default_factory=list)
    total: int = 0

    def __len__(self) -> int:
        return len(self.products)


def score_products(terms: Iterable[str], word_index: Dict[str, List[str]]) -> Dict[str, int]:
    """Accumulate match scores per product id.

    Args:
        terms: Normalized query words (duplicates count twice)
        word_index: Persisted word index, word -> product ids

    Returns:
        Product id -> total score, only for products that matched
    """
    scores: Dict[str, int] = {}
    for term in terms:
        for word, ids in word_index.items():
            if term in word or word in term:
                points = EXACT_MATCH_SCORE if word == term else PARTIAL_MATCH_SCORE
                for product_id in ids:
                    scores[product_id] = scores.get(product_id, 0) + points
    return scores


def search_products(
    query: str,
    limit: int = SEARCH_LIMIT,
    store: Optional[CatalogStore] = None,
) -> SearchResult:
    """Search the catalog for ``query``.

    Words shorter than two characters are ignored. Results are ranked by
    score, ties broken by product id, and cut to ``limit``.

    Returns:
        SearchResult, empty when nothing matches or the store fails
    """
    terms = extract_query_words(query, min_length=MIN_QUERY_WORD_LENGTH)
    result = SearchResult(query=query, terms=terms)
    if not terms:
        return result

    try:
        store = store or get_store()
        scores = score_products(terms, store.get_word_index())
        ranked = sorted(scores.items(), key=lambda item: (-item[1], item[0]))[:limit]
        products = store.get_products([product_id for product_id, _ in ranked])
    except Exception as e:
        logger.exception(f"Search failed for query {query!r}: {e}")
        return result

    result.total = len(scores)
    result.products = [ScoredProduct(product=p, score=scores[p.id]) for p in products]
    return result


def _matching_ids(index: Dict[str, List[str]], name: str) -> List[str]:
    """Ids under every index key that contains ``name`` or is contained in it."""
    needle = normalize_text(name)
    if not needle:
        return []
    ids: Dict[str, None] = {}
    for key, key_ids in index.items():
        if needle in key or key in needle:
            for product_id in key_ids:
                ids[product_id] = None
    return list(ids)


def _products_by_key(
    store: CatalogStore,
    get_index: Callable[[], Dict[str, List[str]]],
    name: str,
    limit: int,
    label: str,
) -> List[Product]:
    try:
        ids = _matching_ids(get_index(), name)[:limit]
        return store.get_products(ids)
    except Exception as e:
        logger.exception(f"Lookup by {label} {name!r} failed: {e}")
        return []


def get_products_by_category(
    category: str,
    limit: int = 50,
    store: Optional[CatalogStore] = None,
) -> List[Product]:
    """Products whose normalized category contains ``category`` or vice versa."""
    store = store or get_store()
    return _products_by_key(store, store.get_category_index, category, limit, "category")


def get_products_by_brand(
    brand: str,
    limit: int = 50,
    store: Optional[CatalogStore] = None,
) -> List[Product]:
    """Products whose normalized brand contains ``brand`` or vice versa."""
    store = store or get_store()
    return _products_by_key(store, store.get_brand_index, brand, limit, "brand")


def _index_counts(index: Dict[str, List[str]]) -> List[Dict[str, Any]]:
    counts = [{"name": name, "count": len(ids)} for name, ids in index.items()]
    return sorted(counts, key=lambda item: (-item["count"], item["name"]))


def get_all_categories(store: Optional[CatalogStore] = None) -> List[Dict[str, Any]]:
    """All indexed categories as ``{"name", "count"}``, largest first."""
    try:
        return _index_counts((store or get_store()).get_category_index())
    except Exception as e:
        logger.exception(f"Could not load categories: {e}")
        return []


def get_all_brands(store: Optional[CatalogStore] = None) -> List[Dict[str, Any]]:
    """All indexed brands as ``{"name", "count"}``, largest first."""
    try:
        return _index_counts((store or get_store()).get_brand_index())
    except Exception as e:
        logger.exception(f"Could not load brands: {e}")
        return []


def get_catalog_metadata(store: Optional[CatalogStore] = None) -> CatalogMetadata:
    """Product count and last sync time.

    Raises:
        StoreError: If the store cannot be read
    """
    return (store or get_store()).get_metadata()


def get_random_products(
    limit: int = 10,
    rng: Optional[random.Random] = None,
    store: Optional[CatalogStore] = None,
) -> List[Product]:
    """A random sample of current products; pass ``rng`` for reproducible picks."""
    rng = rng or random.Random()
    try:
        store = store or get_store()
        ids = sorted(store.get_all_ids())
        return store.get_products(rng.sample(ids, min(limit, len(ids))))
    except Exception as e:
        logger.exception(f"Could not load random products: {e}")
        return []


def _iter_all_products(store: CatalogStore) -> Iterable[Product]:
    ids = sorted(store.get_all_ids())
    for start in range(0, len(ids), _SCAN_BATCH_SIZE):
        yield from store.get_products(ids[start:start + _SCAN_BATCH_SIZE])


def get_discounted_products(limit: int = 10, store: Optional[CatalogStore] = None) -> List[Product]:
    """Discounted products, biggest discount first."""
    try:
        discounted = [p for p in _iter_all_products(store or get_store()) if p.has_discount]
    except Exception as e:
        logger.exception(f"Could not load discounted products: {e}")
        return []
    discounted.sort(key=lambda p: (-p.discount_percentage, p.id))
    return discounted[:limit]


def get_stats(store: Optional[CatalogStore] = None) -> Dict[str, Any]:
    """Catalog statistics for the debug endpoint.

    Raises:
        StoreError: If the store cannot be read
    """
    store = store or get_store()
    metadata = store.get_metadata()
    return {
        "total_products": metadata.count,
        "last_update": metadata.last_update,
        "product_ids": len(store.get_all_ids()),
        "indexed_words": len(store.get_word_index()),
        "categories": len(store.get_category_index()),
        "brands": len(store.get_brand_index()),
    }
