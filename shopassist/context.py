"""Rendering of retrieval results into the context block for the LLM.

The block is plain text with a fixed shape: catalog statistics, optional
category/brand listings, then one numbered entry per product. When
nothing was found the block says so and repeats the query; it never
lists products that retrieval did not return.
"""

from typing import Any, Dict, List, Optional, Sequence

from feedsync.models import CatalogMetadata, Product

from shopassist.config import CONTEXT_DESCRIPTION_CHARS, MAX_CONTEXT_BRANDS, MAX_CONTEXT_CATEGORIES
from shopassist.search import ScoredProduct

__all__ = [
    "EMPTY_CATALOG_NOTICE",
    "format_price",
    "short_description",
    "render_product",
    "render_no_results",
    "render_context",
]

EMPTY_CATALOG_NOTICE = "The product catalog is empty. Run a sync to load products."


def format_price(value: float) -> str:
    return f"€{value:.2f}"


def short_description(description: str, max_chars: int = CONTEXT_DESCRIPTION_CHARS) -> str:
    """Cut to ``max_chars``; the ellipsis marks an actual cut only."""
    if len(description) <= max_chars:
        return description
    return description[:max_chars] + "..."


def render_product(rank: int, product: Product, score: int = 0) -> str:
    """One numbered product entry, ending with a blank line."""
    header = f"{rank}. **{product.title}**"
    if score > 0:
        header += f" [score: {score}]"
    lines = [header]

    if product.has_discount and product.sale_price is not None:
        lines.append(
            f"   Price: {format_price(product.sale_price)} "
            f"(was ~~{format_price(product.price)}~~, -{product.discount_percentage}%)"
        )
    else:
        lines.append(f"   Price: {format_price(product.price)}")

    availability = "in stock" if product.available else "out of stock"
    if product.stock_quantity > 0:
        availability += f" ({product.stock_quantity} pcs)"
    lines.append(f"   Availability: {availability}")

    if product.category:
        lines.append(f"   Category: {product.category}")
    if product.brand:
        lines.append(f"   Brand: {product.brand}")
    if product.description:
        lines.append(f"   Description: {short_description(product.description)}")
    if product.url:
        lines.append(f"   URL: {product.url}")

    return "\n".join(lines) + "\n\n"


def render_no_results(query: str) -> str:
    return (
        f'No products found for "{query}".\n'
        "Suggest broader or different search words, or asking about a category.\n"
    )


def _render_counts(title: str, items: Sequence[Dict[str, Any]], limit: int) -> str:
    lines = [f"{title}:"]
    lines.extend(f"- {item['name']} ({item['count']} products)" for item in items[:limit])
    return "\n".join(lines) + "\n\n"


def render_context(
    products: Sequence[ScoredProduct],
    query: str,
    intent: Optional[str] = None,
    metadata: Optional[CatalogMetadata] = None,
    categories: Optional[List[Dict[str, Any]]] = None,
    brands: Optional[List[Dict[str, Any]]] = None,
    no_results_notice: bool = True,
) -> str:
    """Render the full context block.

    Args:
        products: Retrieved products in rank order
        query: The user's original query
        intent: Detected intent label
        metadata: Catalog statistics to include
        categories: ``{"name", "count"}`` listing to include, largest first
        brands: Same, for brands
        no_results_notice: Say so when ``products`` is empty; off when
            the query asked for no products

    Returns:
        Context text
    """
    context = ""
    if metadata is not None:
        context += "CATALOG STATISTICS:\n"
        context += f"- Products in catalog: {metadata.count}\n"
        context += f"- Last update: {metadata.last_update or 'unknown'}\n\n"
    if intent:
        context += f"QUERY INTENT: {intent}\n\n"

    if categories:
        context += _render_counts("AVAILABLE CATEGORIES", categories, MAX_CONTEXT_CATEGORIES)
    if brands:
        context += _render_counts("AVAILABLE BRANDS", brands, MAX_CONTEXT_BRANDS)

    if not products:
        return (context + render_no_results(query)) if no_results_notice else context

    context += "MATCHING PRODUCTS (ranked by relevance):\n\n"
    for rank, item in enumerate(products, start=1):
        context += render_product(rank, item.product, item.score)
    return context
