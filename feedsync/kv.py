"""Key-value backends for the catalog store.

Both backends expose the handful of Redis-style operations the catalog
needs: strings, sets, hashes and pipelined writes. SQLite is the local
default; Redis (including Upstash over ``rediss://``) is used in
production.
"""

import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, Dict, Generator, List, Optional, Sequence, Set, Tuple

import redis

from feedsync.config import DB_PATH, STORE_BACKEND, ConfigError, get_setting, require_setting

__all__ = [
    "KeyValueStore",
    "SQLiteKeyValueStore",
    "RedisKeyValueStore",
    "open_kv_store",
]


class KeyValueStore:
    """Operations shared by all backends.

    ``ERRORS`` lists the backend exception types that callers translate
    into ``StoreError``.
    """

    ERRORS: Tuple[type, ...] = ()

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def get_many(self, keys: Sequence[str]) -> List[Optional[str]]:
        """Values for ``keys`` in order; missing keys give None."""
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        """Set ``key`` only if it does not exist; it expires after ``ttl`` seconds."""
        raise NotImplementedError

    def delete(self, *keys: str) -> None:
        raise NotImplementedError

    def sadd(self, key: str, *members: str) -> None:
        raise NotImplementedError

    def smembers(self, key: str) -> Set[str]:
        raise NotImplementedError

    def hset(self, key: str, mapping: Dict[str, str]) -> None:
        raise NotImplementedError

    def hgetall(self, key: str) -> Dict[str, str]:
        raise NotImplementedError

    def pipeline(self) -> Any:
        """Queue writes; nothing is sent until ``execute()``."""
        raise NotImplementedError


# =============================================================================
# SQLite
# =============================================================================


@contextmanager
def get_connection(db_path: str) -> Generator[sqlite3.Connection, None, None]:
    """Context manager for database connections."""
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_kv_db(db_path: str) -> None:
    """Create the string, set and hash tables."""
    with get_connection(db_path) as conn:
        cursor = conn.cursor()
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_strings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                expires_at REAL
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_sets (
                key TEXT NOT NULL,
                member TEXT NOT NULL,
                PRIMARY KEY (key, member)
            )
        """)
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS kv_hashes (
                key TEXT NOT NULL,
                field TEXT NOT NULL,
                value TEXT NOT NULL,
                PRIMARY KEY (key, field)
            )
        """)
        conn.commit()


def _op_set(cursor: sqlite3.Cursor, key: str, value: str) -> None:
    cursor.execute("""
        INSERT INTO kv_strings (key, value, expires_at) VALUES (?, ?, NULL)
        ON CONFLICT(key) DO UPDATE SET value = excluded.value, expires_at = NULL
    """, (key, str(value)))


def _op_delete(cursor: sqlite3.Cursor, *keys: str) -> None:
    params = [(k,) for k in keys]
    cursor.executemany("DELETE FROM kv_strings WHERE key = ?", params)
    cursor.executemany("DELETE FROM kv_sets WHERE key = ?", params)
    cursor.executemany("DELETE FROM kv_hashes WHERE key = ?", params)


def _op_sadd(cursor: sqlite3.Cursor, key: str, *members: str) -> None:
    cursor.executemany(
        "INSERT OR IGNORE INTO kv_sets (key, member) VALUES (?, ?)",
        [(key, str(m)) for m in members],
    )


def _op_hset(cursor: sqlite3.Cursor, key: str, mapping: Dict[str, str]) -> None:
    cursor.executemany("""
        INSERT INTO kv_hashes (key, field, value) VALUES (?, ?, ?)
        ON CONFLICT(key, field) DO UPDATE SET value = excluded.value
    """, [(key, f, str(v)) for f, v in mapping.items()])


class SQLitePipeline:
    """Queued writes applied in one SQLite transaction."""

    def __init__(self, store: "SQLiteKeyValueStore"):
        self._store = store
        self._ops: List[Tuple[Callable[..., None], tuple]] = []

    def __len__(self) -> int:
        return len(self._ops)

    def set(self, key: str, value: str) -> "SQLitePipeline":
        self._ops.append((_op_set, (key, value)))
        return self

    def delete(self, *keys: str) -> "SQLitePipeline":
        self._ops.append((_op_delete, keys))
        return self

    def sadd(self, key: str, *members: str) -> "SQLitePipeline":
        self._ops.append((_op_sadd, (key,) + members))
        return self

    def hset(self, key: str, mapping: Optional[Dict[str, str]] = None) -> "SQLitePipeline":
        self._ops.append((_op_hset, (key, dict(mapping or {}))))
        return self

    def execute(self) -> List[None]:
        ops, self._ops = self._ops, []
        with self._store._transaction() as cursor:
            for op, args in ops:
                op(cursor, *args)
        return [None] * len(ops)


class SQLiteKeyValueStore(KeyValueStore):
    """Key-value store on a local SQLite file."""

    ERRORS = (sqlite3.Error,)

    def __init__(self, db_path: str = DB_PATH):
        self.db_path = db_path
        init_kv_db(db_path)

    @contextmanager
    def _transaction(self) -> Generator[sqlite3.Cursor, None, None]:
        with get_connection(self.db_path) as conn:
            cursor = conn.cursor()
            try:
                yield cursor
                conn.commit()
            except BaseException:
                conn.rollback()
                raise

    def get(self, key: str) -> Optional[str]:
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM kv_strings WHERE key = ? AND (expires_at IS NULL OR expires_at > ?)",
                (key, time.time()),
            ).fetchone()
            return row["value"] if row else None

    def get_many(self, keys: Sequence[str]) -> List[Optional[str]]:
        if not keys:
            return []
        found: Dict[str, str] = {}
        with get_connection(self.db_path) as conn:
            for start in range(0, len(keys), 500):
                chunk = list(keys[start:start + 500])
                placeholders = ",".join("?" * len(chunk))
                rows = conn.execute(
                    f"SELECT key, value FROM kv_strings WHERE key IN ({placeholders}) "
                    "AND (expires_at IS NULL OR expires_at > ?)",
                    (*chunk, time.time()),
                ).fetchall()
                found.update((row["key"], row["value"]) for row in rows)
        return [found.get(k) for k in keys]

    def set(self, key: str, value: str) -> None:
        with self._transaction() as cursor:
            _op_set(cursor, key, value)

    def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        now = time.time()
        with self._transaction() as cursor:
            cursor.execute(
                "DELETE FROM kv_strings WHERE key = ? AND expires_at IS NOT NULL AND expires_at <= ?",
                (key, now),
            )
            cursor.execute(
                "INSERT OR IGNORE INTO kv_strings (key, value, expires_at) VALUES (?, ?, ?)",
                (key, str(value), now + ttl),
            )
            return cursor.rowcount == 1

    def delete(self, *keys: str) -> None:
        if keys:
            with self._transaction() as cursor:
                _op_delete(cursor, *keys)

    def sadd(self, key: str, *members: str) -> None:
        if members:
            with self._transaction() as cursor:
                _op_sadd(cursor, key, *members)

    def smembers(self, key: str) -> Set[str]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute("SELECT member FROM kv_sets WHERE key = ?", (key,)).fetchall()
            return {row["member"] for row in rows}

    def hset(self, key: str, mapping: Dict[str, str]) -> None:
        if mapping:
            with self._transaction() as cursor:
                _op_hset(cursor, key, mapping)

    def hgetall(self, key: str) -> Dict[str, str]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                "SELECT field, value FROM kv_hashes WHERE key = ? ORDER BY rowid", (key,)
            ).fetchall()
            return {row["field"]: row["value"] for row in rows}

    def pipeline(self) -> SQLitePipeline:
        return SQLitePipeline(self)


# =============================================================================
# Redis
# =============================================================================


class RedisKeyValueStore(KeyValueStore):
    """Key-value store on Redis.

    Accepts a ready client (tests) or a URL; ``rediss://`` URLs work for
    Upstash.
    """

    ERRORS = (redis.exceptions.RedisError,)

    def __init__(self, client: Optional[redis.Redis] = None, url: Optional[str] = None):
        if client is None:
            if not url:
                raise ConfigError("Redis URL not configured")
            client = redis.from_url(
                url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=10,
            )
        self.client = client

    def get(self, key: str) -> Optional[str]:
        return self.client.get(key)

    def get_many(self, keys: Sequence[str]) -> List[Optional[str]]:
        if not keys:
            return []
        return list(self.client.mget(list(keys)))

    def set(self, key: str, value: str) -> None:
        self.client.set(key, value)

    def set_if_absent(self, key: str, value: str, ttl: int) -> bool:
        return bool(self.client.set(key, value, nx=True, ex=ttl))

    def delete(self, *keys: str) -> None:
        if keys:
            self.client.delete(*keys)

    def sadd(self, key: str, *members: str) -> None:
        if members:
            self.client.sadd(key, *members)

    def smembers(self, key: str) -> Set[str]:
        return set(self.client.smembers(key) or ())

    def hset(self, key: str, mapping: Dict[str, str]) -> None:
        if mapping:
            self.client.hset(key, mapping=mapping)

    def hgetall(self, key: str) -> Dict[str, str]:
        return dict(self.client.hgetall(key) or {})

    def pipeline(self) -> Any:
        # Batching only; cross-command atomicity is not needed
        return self.client.pipeline(transaction=False)


def open_kv_store(
    backend: Optional[str] = None,
    db_path: Optional[str] = None,
    redis_url: Optional[str] = None,
) -> KeyValueStore:
    """Open the configured backend.

    Args:
        backend: "sqlite" or "redis" (default: STORE_BACKEND env)
        db_path: SQLite file (default: DB_PATH env)
        redis_url: Redis URL (default: REDIS_URL or UPSTASH_REDIS_URL env)

    Raises:
        ConfigError: Unknown backend or missing Redis URL
    """
    backend = (backend or get_setting("STORE_BACKEND", default=STORE_BACKEND) or "sqlite").lower()
    if backend == "sqlite":
        return SQLiteKeyValueStore(db_path or get_setting("DB_PATH", default=DB_PATH))
    if backend == "redis":
        url = redis_url or require_setting("REDIS_URL", "UPSTASH_REDIS_URL")
        return RedisKeyValueStore(url=url)
    raise ConfigError(f"Unknown STORE_BACKEND: {backend}. Must be 'sqlite' or 'redis'")
