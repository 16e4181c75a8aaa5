"""Inverted index construction.

``build_index`` is pure: it takes one product generation and returns an
``IndexBuildResult``. Writing the result to the store is a separate step
(``CatalogStore.replace_indexes``).
"""

from typing import Dict, Iterable, List

from feedsync.config import (
    MAX_INDEXED_WORDS,
    MAX_WORDS_PER_PRODUCT,
    MIN_INDEX_WORD_LENGTH,
    MIN_PRODUCTS_PER_WORD,
)
from feedsync.logging_config import get_logger
from feedsync.models import IndexBuildResult, Product
from feedsync.normalize import extract_index_words, normalize_text

__all__ = ["product_search_text", "build_index", "filter_word_index"]

logger = get_logger("indexer")


def product_search_text(product: Product) -> str:
    """Text a product is findable by: title, description and brand."""
    return f"{product.title} {product.description} {product.brand}"


def _add(index: Dict[str, Dict[str, None]], key: str, product_id: str) -> None:
    # dict as an insertion-ordered set
    index.setdefault(key, {})[product_id] = None


def _as_lists(index: Dict[str, Dict[str, None]]) -> Dict[str, List[str]]:
    return {key: list(ids) for key, ids in index.items()}


def filter_word_index(
    words: Dict[str, List[str]],
    min_products: int = MIN_PRODUCTS_PER_WORD,
    max_words: int = MAX_INDEXED_WORDS,
) -> Dict[str, List[str]]:
    """Keep words backed by at least ``min_products`` products.

    Retention follows first-seen order and stops at ``max_words``
    entries, so a fixed input always yields the same index.
    """
    kept: Dict[str, List[str]] = {}
    for word, ids in words.items():
        if len(kept) >= max_words:
            break
        if len(ids) >= min_products:
            kept[word] = ids
    return kept


def build_index(
    products: Iterable[Product],
    min_word_length: int = MIN_INDEX_WORD_LENGTH,
    max_words_per_product: int = MAX_WORDS_PER_PRODUCT,
    min_products_per_word: int = MIN_PRODUCTS_PER_WORD,
    max_indexed_words: int = MAX_INDEXED_WORDS,
) -> IndexBuildResult:
    """Build word, category and brand indexes for a product generation.

    Args:
        products: Canonical products with unique ids
        min_word_length: Shortest word that gets indexed
        max_words_per_product: Cap on words extracted per product
        min_products_per_word: Words seen in fewer products are not kept
        max_indexed_words: Cap on the number of kept words

    Returns:
        IndexBuildResult with the filtered word index and the
        unfiltered category and brand indexes
    """
    words: Dict[str, Dict[str, None]] = {}
    categories: Dict[str, Dict[str, None]] = {}
    brands: Dict[str, Dict[str, None]] = {}

    for product in products:
        for word in extract_index_words(
            product_search_text(product),
            min_length=min_word_length,
            max_words=max_words_per_product,
        ):
            _add(words, word, product.id)

        category_key = normalize_text(product.category)
        if category_key:
            _add(categories, category_key, product.id)

        brand_key = normalize_text(product.brand)
        if brand_key:
            _add(brands, brand_key, product.id)

    result = IndexBuildResult(
        words=filter_word_index(_as_lists(words), min_products_per_word, max_indexed_words),
        categories=_as_lists(categories),
        brands=_as_lists(brands),
        extracted_word_count=len(words),
    )
    logger.info(
        f"Index built: {len(result.words)}/{len(words)} words kept, "
        f"{len(categories)} categories, {len(brands)} brands"
    )
    return result
