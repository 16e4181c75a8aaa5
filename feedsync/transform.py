"""Mapping of raw feed records to canonical products.

Feeds name the same logical field differently (``g:price`` in Google
Merchant feeds, ``PRICE_VAT`` in Heureka feeds, ``price`` elsewhere).
``FIELD_SOURCES`` lists, per field, the accessors to try in priority
order; the first non-empty value wins.
"""

import hashlib
import json
import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from feedsync.config import DEFAULT_CURRENCY, MAX_DESCRIPTION_CHARS
from feedsync.logging_config import get_logger
from feedsync.models import Product, TransformWarning
from feedsync.normalize import strip_html, truncate
from feedsync.url_validation import clean_product_url

__all__ = [
    "FIELD_SOURCES",
    "resolve_field",
    "parse_price",
    "parse_availability",
    "parse_quantity",
    "fallback_product_id",
    "transform_record",
    "transform_records",
]

logger = get_logger("transform")

Accessor = Callable[[Dict[str, Any]], Any]


def _keys(*names: str) -> Tuple[Accessor, ...]:
    """Accessors reading the given record keys, in order."""
    return tuple((lambda raw, name=name: raw.get(name)) for name in names)


FIELD_SOURCES: Dict[str, Tuple[Accessor, ...]] = {
    "id": _keys("g:id", "id", "ID", "ITEM_ID", "code", "CODE"),
    "title": _keys("g:title", "title", "PRODUCT", "name", "NAME", "PRODUCTNAME"),
    "description": _keys(
        "g:description", "description", "DESCRIPTION", "DESCRIPTION_SHORT", "content",
    ),
    "price": _keys("g:price", "price", "PRICE", "PRICE_VAT"),
    "sale_price": _keys("g:sale_price", "sale_price", "STANDARD_PRICE", "compareAtPrice"),
    "category": _keys(
        "g:product_type", "g:google_product_category", "category", "CATEGORY", "CATEGORYTEXT",
    ),
    "brand": _keys("g:brand", "brand", "BRAND", "MANUFACTURER", "vendor"),
    "availability": _keys("g:availability", "availability", "AVAILABILITY", "stock"),
    "image": _keys("g:image_link", "g:image", "image", "IMGURL", "imageUrl", "IMAGE"),
    "url": _keys("g:link", "link", "URL", "url", "PRODUCT_URL"),
    "ean": _keys("g:gtin", "ean", "EAN", "gtin", "GTIN"),
    "stock_quantity": _keys("quantity", "STOCK_QUANTITY", "stock_quantity", "COUNT"),
}

# Availability strings that mean "can be bought now"
AVAILABLE_TOKENS = ("in stock", "available")
AVAILABLE_EXACT = {"1", "true"}
# Checked first, so "unavailable" does not count as "available"
UNAVAILABLE_TOKENS = ("out of stock", "unavailable", "not available")

_PRICE_CHARS_RE = re.compile(r"[^\d.,]")
_LEADING_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?|\.\d+")
_LEADING_INT_RE = re.compile(r"\s*-?\d+")


def _text_value(value: Any) -> Optional[str]:
    """Reduce a parsed XML value to a non-empty string, or None.

    Elements with attributes arrive as dicts: their text lives under
    ``"_"`` and Atom links keep the target in ``href``.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        return _text_value(value.get("_")) or _text_value(value.get("href"))
    if isinstance(value, list):
        for item in value:
            text = _text_value(item)
            if text:
                return text
    return None


def resolve_field(raw: Dict[str, Any], field: str) -> Optional[str]:
    """First non-empty value for ``field`` according to FIELD_SOURCES."""
    for accessor in FIELD_SOURCES[field]:
        value = _text_value(accessor(raw))
        if value:
            return value
    return None


def parse_price(value: Any) -> float:
    """Parse a price string such as ``"5,99 EUR"`` or ``"1,299.00"``.

    Only digits and separators are kept. A comma is the decimal
    separator when there is no dot, otherwise a thousands separator.
    Unparseable input yields 0.0; this never raises.
    """
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return round(float(value), 2) if math.isfinite(value) and value > 0 else 0.0

    cleaned = _PRICE_CHARS_RE.sub("", str(value))
    if "," in cleaned:
        cleaned = cleaned.replace(",", "") if "." in cleaned else cleaned.replace(",", ".")

    match = _LEADING_NUMBER_RE.match(cleaned)
    if not match:
        return 0.0
    return round(float(match.group()), 2)


def parse_availability(value: Optional[str]) -> bool:
    """True for "in stock"/"available"/"1"/"true" (case-insensitive)."""
    if value is None:
        return False
    text = str(value).strip().lower()
    if text in AVAILABLE_EXACT:
        return True
    if any(token in text for token in UNAVAILABLE_TOKENS):
        return False
    return any(token in text for token in AVAILABLE_TOKENS)


def parse_quantity(value: Any) -> int:
    """Leading integer of ``value``, clamped at 0; 0 when unparseable."""
    if value is None:
        return 0
    match = _LEADING_INT_RE.match(str(value))
    return max(int(match.group()), 0) if match else 0


def fallback_product_id(raw: Dict[str, Any]) -> str:
    """Id for a record that has none, derived from the record content.

    The same record always gets the same id, so re-syncing an unchanged
    feed leaves the store unchanged.
    """
    payload = json.dumps(raw, sort_keys=True, ensure_ascii=False, default=str)
    return "product_" + hashlib.sha1(payload.encode("utf-8")).hexdigest()[:9]


def transform_record(
    raw: Dict[str, Any],
    warnings: Optional[List[TransformWarning]] = None,
) -> Product:
    """Transform one raw feed record into a Product.

    Missing optional fields fall back to defaults; a record is never
    dropped. Fallbacks for id, title and price are reported through
    ``warnings`` when a list is passed in.
    """
    issues: List[Tuple[str, str]] = []

    product_id = resolve_field(raw, "id")
    if not product_id:
        product_id = fallback_product_id(raw)
        issues.append(("id", "no id field, generated from record content"))

    title = resolve_field(raw, "title") or ""
    if not title:
        issues.append(("title", "no title field"))

    price_text = resolve_field(raw, "price")
    price = parse_price(price_text)
    if price_text is None:
        issues.append(("price", "no price field, defaulting to 0"))

    sale_text = resolve_field(raw, "sale_price")
    sale_price: Optional[float] = parse_price(sale_text) if sale_text else None
    has_discount = sale_price is not None and 0 < sale_price < price
    discount_percentage = 0
    if has_discount:
        # Half-up rounding, as shoppers expect from a percentage badge
        discount_percentage = int(math.floor((1 - sale_price / price) * 100 + 0.5))
    else:
        sale_price = None

    availability = resolve_field(raw, "availability")
    available = parse_availability(availability) if availability is not None else True

    description = truncate(strip_html(resolve_field(raw, "description")), MAX_DESCRIPTION_CHARS)

    if warnings is not None:
        for field, message in issues:
            warnings.append(TransformWarning(record_id=product_id, field=field, message=message))

    return Product(
        id=product_id,
        title=title,
        description=description,
        price=price,
        sale_price=sale_price,
        has_discount=has_discount,
        discount_percentage=discount_percentage,
        category=resolve_field(raw, "category") or "",
        brand=resolve_field(raw, "brand") or "",
        available=available,
        stock_quantity=parse_quantity(resolve_field(raw, "stock_quantity")),
        image=clean_product_url(resolve_field(raw, "image")),
        url=clean_product_url(resolve_field(raw, "url")),
        ean=resolve_field(raw, "ean"),
        currency=DEFAULT_CURRENCY,
    )


def transform_records(
    records: List[Dict[str, Any]],
    warnings: Optional[List[TransformWarning]] = None,
) -> List[Product]:
    """Transform all records, keeping one product per id.

    When a feed repeats an id the later record wins, at the position of
    the first occurrence.
    """
    by_id: Dict[str, Product] = {}
    for raw in records:
        product = transform_record(raw, warnings)
        if product.id in by_id:
            logger.debug(f"Duplicate product id {product.id}, keeping the later record")
        by_id[product.id] = product
    return list(by_id.values())
