"""API endpoints: catalog sync trigger, search debugging and chat.

- ``/api/sync``   run a catalog sync (scheduled or manual)
- ``/api/search`` inspect retrieval (search, stats, categories, brands, discounts)
- ``/api/chat``   chat completion grounded in retrieved products
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Tuple, Union

from flask import Blueprint, Response, jsonify, request

from feedsync.config import ConfigError
from feedsync.store import StoreError
from feedsync.sync import run_sync

from shopassist.catalog import get_store
from shopassist.chat import ChatCompletionError, answer_chat
from shopassist.config import DEBUG_SEARCH_LIMIT, MAX_SEARCH_LIMIT
from shopassist.search import (
    get_all_brands,
    get_all_categories,
    get_discounted_products,
    get_stats,
    search_products,
)

__all__ = ["api", "is_cron_request", "SYNC_STATUS_CODES"]

logger = logging.getLogger(__name__)

# Create blueprint for API
api = Blueprint("api", __name__, url_prefix="/api")

# HTTP status for failed syncs by error type; anything else is a 500
SYNC_STATUS_CODES = {
    "EmptyFeedError": 400,
    "SyncInProgressError": 409,
}

SEARCH_TYPES = ("search", "stats", "categories", "brands", "discounts")

ApiResponse = Union[Response, Tuple[Response, int]]


def is_cron_request() -> bool:
    """True when the scheduler marked the request with its cron header."""
    return "1" in (request.headers.get("X-Vercel-Cron"), request.headers.get("X-Cron"))


def _not_configured(e: ConfigError) -> Tuple[Response, int]:
    logger.error(f"Configuration error: {e}")
    return jsonify({"success": False, "error": f"Service not configured: {e}"}), 500


@api.route("/sync", methods=["GET", "POST"])
def sync() -> ApiResponse:
    """Fetch the feed and replace the catalog.

    Response JSON (success):
        {"success": true, "message": "Synced N products", "count": N,
         "duration": "1.23s", "timestamp": "...", "source": "cron"|"manual",
         "warnings": 0, "index": {...}}

    Response JSON (failure):
        {"success": false, "error": "...", "error_type": "...", "retryable": bool, ...}
    """
    source = "cron" if is_cron_request() else "manual"
    logger.info(f"Sync triggered ({source})")

    try:
        store = get_store()
    except ConfigError as e:
        return _not_configured(e)

    result = run_sync(store, source=source)
    if result.success:
        return jsonify(result.to_dict())
    return jsonify(result.to_dict()), SYNC_STATUS_CODES.get(result.error_type or "", 500)


def _parse_limit(raw: Any) -> int:
    limit = int(raw)
    if limit < 1:
        raise ValueError("limit must be positive")
    return min(limit, MAX_SEARCH_LIMIT)


def _product_summary(product, score=None) -> Dict[str, Any]:
    summary = {
        "id": product.id,
        "title": product.title,
        "brand": product.brand,
        "category": product.category,
        "price": product.price,
        "salePrice": product.sale_price,
        "discount": f"{product.discount_percentage}%" if product.has_discount else None,
        "available": product.available,
        "url": product.url,
    }
    if score is not None:
        summary["score"] = score
    return summary


@api.route("/search", methods=["GET"])
def search() -> ApiResponse:
    """Debug view of retrieval.

    Query params:
        q: Search text (type=search)
        type: search | stats | categories | brands | discounts
        limit: Max products (default 5)
    """
    query = request.args.get("q", "").strip()
    search_type = request.args.get("type", "search")
    if search_type not in SEARCH_TYPES:
        return jsonify({"success": False, "error": f"type must be one of {list(SEARCH_TYPES)}"}), 400

    try:
        limit = _parse_limit(request.args.get("limit", DEBUG_SEARCH_LIMIT))
    except (TypeError, ValueError):
        return jsonify({"success": False, "error": "limit must be a positive integer"}), 400

    try:
        store = get_store()
        if search_type == "stats":
            result: Dict[str, Any] = get_stats(store)
        elif search_type == "categories":
            result = {"categories": get_all_categories(store)}
        elif search_type == "brands":
            result = {"brands": get_all_brands(store)}
        elif search_type == "discounts":
            discounted = get_discounted_products(limit, store=store)
            result = {"count": len(discounted), "products": [_product_summary(p) for p in discounted]}
        else:
            if not query:
                return jsonify({
                    "usage": {
                        "search": "/api/search?q=sampon nivea",
                        "stats": "/api/search?type=stats",
                        "categories": "/api/search?type=categories",
                        "brands": "/api/search?type=brands",
                        "discounts": "/api/search?type=discounts",
                    }
                })
            found = search_products(query, limit=limit, store=store)
            result = {
                "query": query,
                "terms": found.terms,
                "total": found.total,
                "count": len(found.products),
                "products": [_product_summary(p.product, p.score) for p in found.products],
            }
    except ConfigError as e:
        return _not_configured(e)
    except StoreError as e:
        logger.exception("Search endpoint store failure")
        return jsonify({"success": False, "error": str(e)}), 500

    return jsonify({
        "success": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **result,
    })


@api.route("/chat", methods=["POST"])
def chat() -> ApiResponse:
    """Chat completion with retrieved product context.

    Request JSON:
        {"messages": [{"role": "user", "content": "..."}, ...], "ragContext": "optional"}

    Response JSON:
        The completion, plus a ``_debug`` block (intent, matched products,
        top products, context length).
    """
    data = request.get_json(silent=True) or {}
    messages = data.get("messages")
    if not isinstance(messages, list) or not messages:
        return jsonify({"error": "messages must be a non-empty list"}), 400

    rag_context = data.get("ragContext") or ""
    if not isinstance(rag_context, str):
        return jsonify({"error": "ragContext must be a string"}), 400

    try:
        return jsonify(answer_chat(messages, rag_context=rag_context, store=get_store()))
    except ConfigError as e:
        return _not_configured(e)
    except ChatCompletionError as e:
        return jsonify({"error": "Internal Server Error", "details": str(e)}), 500
