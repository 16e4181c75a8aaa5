"""CSV export of the current catalog generation."""

import csv
import os
from dataclasses import fields
from typing import Any, Dict, List, Optional

from feedsync.models import Product
from feedsync.store import CatalogStore

__all__ = ["CSV_FIELDS", "product_to_row", "export_catalog_to_csv"]

CSV_FIELDS: List[str] = [f.name for f in fields(Product)]


def product_to_row(product: Product) -> Dict[str, Any]:
    """Convert a Product into a CSV-ready row; None becomes an empty cell."""
    row = product.to_dict()
    return {key: "" if value is None else value for key, value in row.items()}


def export_catalog_to_csv(
    store: CatalogStore,
    csv_path: str,
    category: Optional[str] = None,
) -> int:
    """Export every current product to CSV, ordered by id.

    Args:
        store: Catalog store to read from
        csv_path: Path for the output CSV file
        category: Optional exact category filter

    Returns:
        Number of products exported
    """
    products = store.get_products(sorted(store.get_all_ids()))
    if category:
        products = [p for p in products if p.category == category]

    if not products:
        print("No products to export.")
        return 0

    os.makedirs(os.path.dirname(csv_path) or ".", exist_ok=True)
    with open(csv_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_FIELDS, extrasaction="ignore")
        writer.writeheader()
        for product in products:
            writer.writerow(product_to_row(product))

    print(f"Exported {len(products)} products to {csv_path}")
    return len(products)
