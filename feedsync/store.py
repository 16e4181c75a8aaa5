"""Catalog store: products, id set, inverted indexes and sync metadata.

Key layout:

    product:{id}           JSON product
    products:all_ids       set of current ids
    products:count         number of products in the current generation
    products:last_update   ISO-8601 time of the last successful sync
    index:words            hash word -> JSON list of ids
    index:categories       hash normalized category -> JSON list of ids
    index:brands           hash normalized brand -> JSON list of ids

Writes are batched and there is no cross-batch transaction; metadata is
written last by the sync run so that fresh metadata implies complete data.
"""

import json
import uuid
from contextlib import contextmanager
from typing import Dict, Generator, Iterable, List, Optional, Sequence, Set

from feedsync.config import (
    FLUSH_EVERY_BATCHES,
    INDEX_BATCH_SIZE,
    PRODUCT_BATCH_SIZE,
    SYNC_LOCK_TTL,
)
from feedsync.kv import KeyValueStore, open_kv_store
from feedsync.logging_config import get_logger
from feedsync.models import CatalogMetadata, IndexBuildResult, Product

__all__ = [
    "StoreError",
    "SyncInProgressError",
    "CatalogStore",
    "open_store",
    "product_key",
    "ALL_IDS_KEY",
    "COUNT_KEY",
    "LAST_UPDATE_KEY",
    "WORD_INDEX_KEY",
    "CATEGORY_INDEX_KEY",
    "BRAND_INDEX_KEY",
    "SYNC_LOCK_KEY",
]

logger = get_logger("store")

ALL_IDS_KEY = "products:all_ids"
COUNT_KEY = "products:count"
LAST_UPDATE_KEY = "products:last_update"
WORD_INDEX_KEY = "index:words"
CATEGORY_INDEX_KEY = "index:categories"
BRAND_INDEX_KEY = "index:brands"
SYNC_LOCK_KEY = "sync:lock"


class StoreError(Exception):
    """Store unreachable or a read/write failed."""
    pass


class SyncInProgressError(StoreError):
    """Another sync run holds the sync lock."""
    pass


def product_key(product_id: str) -> str:
    return f"product:{product_id}"


def _chunks(items: Sequence, size: int) -> Generator[Sequence, None, None]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


def _decode_ids(raw) -> List[str]:
    """Index values are JSON lists; Upstash may hand them back pre-decoded."""
    if isinstance(raw, list):
        return [str(i) for i in raw]
    try:
        ids = json.loads(raw)
    except (TypeError, ValueError):
        return []
    return [str(i) for i in ids] if isinstance(ids, list) else []


class CatalogStore:
    """Typed access to the catalog keys of a key-value backend."""

    def __init__(self, kv: KeyValueStore):
        self.kv = kv

    @contextmanager
    def _errors(self, action: str) -> Generator[None, None, None]:
        """Translate backend exceptions into StoreError."""
        try:
            yield
        except self.kv.ERRORS as e:
            raise StoreError(f"Store error while {action}: {e}") from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def replace_products(
        self,
        products: Sequence[Product],
        batch_size: int = PRODUCT_BATCH_SIZE,
        flush_every: int = FLUSH_EVERY_BATCHES,
    ) -> int:
        """Replace the previous product generation with ``products``.

        Old product keys are deleted, new ones written in batches of
        ``batch_size`` and the pipeline is flushed every ``flush_every``
        batches to bound the number of in-flight commands.

        Returns:
            Number of products written
        """
        with self._errors("replacing products"):
            old_ids = sorted(self.kv.smembers(ALL_IDS_KEY))
            pipe = self.kv.pipeline()
            for batch in _chunks(old_ids, batch_size):
                pipe.delete(*[product_key(pid) for pid in batch])
            pipe.delete(ALL_IDS_KEY)
            pipe.execute()
            if old_ids:
                logger.info(f"  Deleted {len(old_ids)} products of the previous generation")

            pipe = self.kv.pipeline()
            batches = list(_chunks(list(products), batch_size))
            for n, batch in enumerate(batches, start=1):
                for product in batch:
                    pipe.set(product_key(product.id), json.dumps(product.to_dict(), ensure_ascii=False))
                if n % flush_every == 0:
                    pipe.execute()
                    pipe = self.kv.pipeline()
                    written = min(n * batch_size, len(products))
                    logger.info(f"  Saved {written}/{len(products)} products")

            for batch in _chunks([p.id for p in products], batch_size):
                pipe.sadd(ALL_IDS_KEY, *batch)
            pipe.execute()

        logger.info(f"  All {len(products)} products saved")
        return len(products)

    def replace_indexes(self, result: IndexBuildResult, batch_size: int = INDEX_BATCH_SIZE) -> None:
        """Clear the three index hashes and write the new generation."""
        with self._errors("replacing indexes"):
            pipe = self.kv.pipeline()
            pipe.delete(WORD_INDEX_KEY, CATEGORY_INDEX_KEY, BRAND_INDEX_KEY)
            for key, index in (
                (WORD_INDEX_KEY, result.words),
                (CATEGORY_INDEX_KEY, result.categories),
                (BRAND_INDEX_KEY, result.brands),
            ):
                entries = list(index.items())
                for batch in _chunks(entries, batch_size):
                    pipe.hset(key, mapping={k: json.dumps(ids, ensure_ascii=False) for k, ids in batch})
            pipe.execute()

    def write_metadata(self, count: int, timestamp: str) -> None:
        """Publish the generation; must run after products and indexes."""
        with self._errors("writing metadata"):
            pipe = self.kv.pipeline()
            pipe.set(LAST_UPDATE_KEY, timestamp)
            pipe.set(COUNT_KEY, str(count))
            pipe.execute()

    # ------------------------------------------------------------------
    # Sync lock
    # ------------------------------------------------------------------

    def acquire_sync_lock(self, ttl: int = SYNC_LOCK_TTL) -> str:
        """Take the advisory sync lock, returning its token.

        Raises:
            SyncInProgressError: If another run holds the lock
        """
        token = uuid.uuid4().hex
        with self._errors("acquiring sync lock"):
            acquired = self.kv.set_if_absent(SYNC_LOCK_KEY, token, ttl)
        if not acquired:
            raise SyncInProgressError("Another sync is already running")
        return token

    def release_sync_lock(self, token: str) -> None:
        """Release the lock if ``token`` still owns it."""
        with self._errors("releasing sync lock"):
            if self.kv.get(SYNC_LOCK_KEY) == token:
                self.kv.delete(SYNC_LOCK_KEY)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_product(self, product_id: str) -> Optional[Product]:
        with self._errors("reading product"):
            raw = self.kv.get(product_key(product_id))
        if raw is None:
            return None
        data = raw if isinstance(raw, dict) else json.loads(raw)
        return Product.from_dict(data)

    def get_products(self, ids: Iterable[str]) -> List[Product]:
        """Products for ``ids`` in the given order; unknown ids are skipped."""
        ids = list(ids)
        if not ids:
            return []
        with self._errors("reading products"):
            raws = self.kv.get_many([product_key(pid) for pid in ids])

        products: List[Product] = []
        for raw in raws:
            if raw is None:
                continue
            data = raw if isinstance(raw, dict) else json.loads(raw)
            products.append(Product.from_dict(data))
        return products

    def get_all_ids(self) -> Set[str]:
        with self._errors("reading product ids"):
            return self.kv.smembers(ALL_IDS_KEY)

    def _get_index(self, key: str) -> Dict[str, List[str]]:
        with self._errors(f"reading {key}"):
            raw = self.kv.hgetall(key)
        return {name: _decode_ids(ids) for name, ids in raw.items()}

    def get_word_index(self) -> Dict[str, List[str]]:
        return self._get_index(WORD_INDEX_KEY)

    def get_category_index(self) -> Dict[str, List[str]]:
        return self._get_index(CATEGORY_INDEX_KEY)

    def get_brand_index(self) -> Dict[str, List[str]]:
        return self._get_index(BRAND_INDEX_KEY)

    def get_metadata(self) -> CatalogMetadata:
        with self._errors("reading metadata"):
            count = self.kv.get(COUNT_KEY)
            last_update = self.kv.get(LAST_UPDATE_KEY)
        try:
            parsed_count = int(count) if count is not None else 0
        except (TypeError, ValueError):
            parsed_count = 0
        return CatalogMetadata(count=parsed_count, last_update=last_update)


def open_store(
    backend: Optional[str] = None,
    db_path: Optional[str] = None,
    redis_url: Optional[str] = None,
) -> CatalogStore:
    """CatalogStore on the configured key-value backend."""
    return CatalogStore(open_kv_store(backend=backend, db_path=db_path, redis_url=redis_url))
