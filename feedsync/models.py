"""Data models for catalog products, index builds and sync runs."""

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional

__all__ = [
    "Product",
    "TransformWarning",
    "IndexBuildResult",
    "CatalogMetadata",
    "SyncResult",
]


@dataclass
class Product:
    """A canonical catalog product, as stored under ``product:{id}``.

    ``sale_price`` is only set when it is strictly below ``price``; the
    discount fields are derived from that pair.
    """

    # Required fields
    id: str
    title: str

    description: str = ""
    price: float = 0.0
    sale_price: Optional[float] = None
    has_discount: bool = False
    discount_percentage: int = 0
    category: str = ""
    brand: str = ""
    available: bool = False
    stock_quantity: int = 0
    image: Optional[str] = None
    url: Optional[str] = None
    ean: Optional[str] = None
    currency: str = "EUR"

    @property
    def effective_price(self) -> float:
        """Price the customer pays right now."""
        if self.has_discount and self.sale_price is not None:
            return self.sale_price
        return self.price

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Product":
        """Rebuild a product from its stored JSON form, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


@dataclass
class TransformWarning:
    """A raw record was missing an expected field; a fallback was used."""

    record_id: str
    field: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass
class IndexBuildResult:
    """The three inverted indexes produced from one product generation.

    ``words`` holds only the persisted (filtered and capped) word entries;
    ``extracted_word_count`` records how many distinct words were seen
    before filtering.
    """

    words: Dict[str, List[str]] = field(default_factory=dict)
    categories: Dict[str, List[str]] = field(default_factory=dict)
    brands: Dict[str, List[str]] = field(default_factory=dict)
    extracted_word_count: int = 0

    def summary(self) -> Dict[str, int]:
        return {
            "words": len(self.words),
            "extracted_words": self.extracted_word_count,
            "categories": len(self.categories),
            "brands": len(self.brands),
        }


@dataclass
class CatalogMetadata:
    """Sync metadata (``products:count`` and ``products:last_update``)."""

    count: int = 0
    last_update: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.count <= 0


@dataclass
class SyncResult:
    """Outcome of one sync run."""

    success: bool
    source: str
    product_count: int = 0
    duration: float = 0.0
    timestamp: Optional[str] = None
    warnings: int = 0
    index: Dict[str, int] = field(default_factory=dict)
    error: Optional[str] = None
    error_type: Optional[str] = None
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON responses."""
        result: Dict[str, Any] = {
            "success": self.success,
            "source": self.source,
            "duration": f"{self.duration:.2f}s",
            "timestamp": self.timestamp,
        }
        if self.success:
            result["message"] = f"Synced {self.product_count} products"
            result["count"] = self.product_count
            result["warnings"] = self.warnings
            result["index"] = self.index
        else:
            result["error"] = self.error
            result["error_type"] = self.error_type
            result["retryable"] = self.retryable
        return result
