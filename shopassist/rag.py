"""Retrieval step of the chat flow.

``process_query`` classifies the user's message, retrieves products with
the strategy of the matched intent and renders the context block. When
the strategy finds nothing the fallbacks run in order: full word search,
synonym expansion, then the longest non-stop word on its own.
Greetings and count questions skip the fallbacks and are answered from
catalog statistics.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from feedsync.normalize import extract_query_words, normalize_text
from feedsync.store import CatalogStore

from shopassist.catalog import get_store
from shopassist.config import SEARCH_LIMIT
from shopassist.context import EMPTY_CATALOG_NOTICE, render_context, render_no_results
from shopassist.intents import IntentRule, content_words, expand_query, match_intent
from shopassist.logging_utils import log_interaction
from shopassist.search import (
    ScoredProduct,
    get_all_brands,
    get_all_categories,
    get_discounted_products,
    get_products_by_brand,
    get_products_by_category,
    get_random_products,
    search_products,
)

__all__ = ["RagResult", "process_query", "run_strategy"]

logger = logging.getLogger(__name__)


@dataclass
class RagResult:
    """Outcome of the retrieval step for one user message."""

    intent: Optional[str]
    strategy: str
    products: List[ScoredProduct] = field(default_factory=list)
    context: str = ""
    terms: List[str] = field(default_factory=list)
    # Step that produced the products: the strategy itself or a fallback
    matched_by: Optional[str] = None

    def top_products(self, n: int = 3) -> List[Dict[str, Any]]:
        return [{"title": p.product.title, "score": p.score} for p in self.products[:n]]


def _by_key_terms(lookup, query: str, terms: Sequence[str], limit: int, store: CatalogStore) -> List[ScoredProduct]:
    """Try the whole query, then each content word, as a category/brand name."""
    for name in [normalize_text(query)] + content_words(terms):
        products = lookup(name, limit=limit, store=store)
        if products:
            return [ScoredProduct(product=p) for p in products]
    return []


def run_strategy(
    strategy: str,
    query: str,
    terms: Sequence[str],
    store: CatalogStore,
    limit: int = SEARCH_LIMIT,
    rng: Optional[random.Random] = None,
) -> List[ScoredProduct]:
    """Products for one retrieval strategy ("none" retrieves nothing)."""
    if strategy in ("word", "stats"):
        return search_products(query, limit=limit, store=store).products
    if strategy == "category":
        return _by_key_terms(get_products_by_category, query, terms, limit, store)
    if strategy == "brand":
        return _by_key_terms(get_products_by_brand, query, terms, limit, store)
    if strategy == "discount":
        # Discounted matches for the query first, else the biggest discounts
        matched = [p for p in search_products(query, limit=limit, store=store).products if p.product.has_discount]
        if matched:
            return matched
        return [ScoredProduct(product=p) for p in get_discounted_products(limit, store=store)]
    if strategy == "random":
        return [ScoredProduct(product=p) for p in get_random_products(limit, rng=rng, store=store)]
    return []


def _fallbacks(query: str, terms: Sequence[str], strategy: str, store: CatalogStore, limit: int):
    """Yield (step name, products) for each fallback step in order."""
    if strategy != "word":
        yield "word", search_products(query, limit=limit, store=store).products

    words = content_words(terms)
    synonyms = expand_query(words)
    if synonyms:
        yield "synonyms", search_products(" ".join(synonyms), limit=limit, store=store).products

    if len(words) > 1:
        longest = max(words, key=len)
        yield "single-word", search_products(longest, limit=limit, store=store).products


def process_query(
    query: str,
    store: Optional[CatalogStore] = None,
    limit: int = SEARCH_LIMIT,
    rules: Optional[Sequence[IntentRule]] = None,
    rng: Optional[random.Random] = None,
) -> RagResult:
    """Retrieve products for ``query`` and render the context block.

    Never raises: an unreadable store yields an empty result with the
    no-results notice.
    """
    terms = extract_query_words(query)
    try:
        store = store or get_store()
        metadata = store.get_metadata()
    except Exception as e:
        logger.exception(f"Retrieval failed for query {query!r}: {e}")
        return RagResult(intent=None, strategy="none", context=render_no_results(query), terms=terms)

    if metadata.is_empty:
        logger.warning("Catalog is empty, nothing to retrieve")
        return RagResult(intent=None, strategy="none", context=EMPTY_CATALOG_NOTICE, terms=terms)

    rule = match_intent(query, rules)
    products = run_strategy(rule.strategy, query, terms, store, limit=limit, rng=rng)
    matched_by = rule.strategy if products else None

    # Statistics intents get neither fallbacks nor the no-results notice
    searched = rule.strategy not in ("stats", "none")
    if not products and searched:
        for step, found in _fallbacks(query, terms, rule.strategy, store, limit):
            if found:
                products, matched_by = found, step
                break

    categories = get_all_categories(store) if rule.intent == "category" else None
    brands = get_all_brands(store) if rule.strategy == "brand" else None
    context = render_context(
        products,
        query,
        intent=rule.intent,
        metadata=metadata,
        categories=categories,
        brands=brands,
        no_results_notice=searched,
    )

    result = RagResult(
        intent=rule.intent,
        strategy=rule.strategy,
        products=products,
        context=context,
        terms=terms,
        matched_by=matched_by,
    )
    try:
        log_interaction(
            "rag_result",
            {
                "query": query,
                "intent": result.intent,
                "strategy": result.strategy,
                "matched_by": matched_by,
                "terms": terms,
                "matched_products": len(products),
                "top_products": result.top_products(),
            },
        )
    except OSError as e:
        logger.warning(f"Could not write interaction log: {e}")
    return result
