"""TTL-based cache for external API payloads.

Uses SQLite for persistence across runs. Payloads are stored as JSON under
the string keys the enrichment code builds (``gh-{repo}-info``,
``npm-{package}``, ...). The key prefix up to the first ``-`` is the source
kind, and each kind has its own TTL.

Cache is transparent - callers use ``get``/``set`` and the cache handles
expiry automatically. Old entries are purged periodically.
"""

import json
import sqlite3
import time
from pathlib import Path
from typing import Any, Protocol

from loguru import logger

# Default TTL per source kind (seconds)
_DEFAULT_TTLS: dict[str, int] = {
    "gh": 86400,  # 1 day
    "npm": 86400,  # 1 day
    "bundlephobia": 604800,  # 7 days
}

_FALLBACK_TTL = 86400

# Purge expired entries every N writes
_PURGE_INTERVAL = 50


class CacheGateway(Protocol):
    """What the enrichment code needs from a cache."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, payload: Any) -> None: ...


def _key_kind(key: str) -> str:
    """Source kind of a cache key: ``gh-a/b-info`` -> ``gh``."""
    return key.split("-", 1)[0]


class ApiCache:
    """SQLite-backed TTL cache for decoded API payloads."""

    def __init__(self, db_path: Path, ttls: dict[str, int] | None = None):
        self._db_path = db_path
        self._ttls = {**_DEFAULT_TTLS, **(ttls or {})}
        self._op_count = 0

        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(db_path))
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode = WAL")
        self._conn.execute("PRAGMA synchronous = NORMAL")
        self._conn.execute("PRAGMA busy_timeout = 5000")

        self._create_tables()
        logger.debug(f"ApiCache initialized at {db_path}")

    def _create_tables(self) -> None:
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS api_cache (
                key TEXT PRIMARY KEY,
                kind TEXT NOT NULL,
                payload TEXT NOT NULL,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL,
                hit_count INTEGER NOT NULL DEFAULT 0
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_api_cache_expires
            ON api_cache(expires_at)
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_api_cache_kind
            ON api_cache(kind)
        """)
        self._conn.commit()

    def get(self, key: str) -> Any | None:
        """Get cached payload if it exists and has not expired."""
        now = time.time()

        row = self._conn.execute(
            "SELECT payload FROM api_cache WHERE key = ? AND expires_at > ?",
            (key, now),
        ).fetchone()

        if row:
            self._conn.execute(
                "UPDATE api_cache SET hit_count = hit_count + 1 WHERE key = ?",
                (key,),
            )
            self._conn.commit()
            logger.debug(f"Cache HIT: {key}")
            return json.loads(row["payload"])

        logger.debug(f"Cache MISS: {key}")
        return None

    def set(self, key: str, payload: Any) -> None:
        """Store payload in cache with the TTL of its source kind."""
        kind = _key_kind(key)
        now = time.time()
        ttl = self._ttls.get(kind, _FALLBACK_TTL)
        expires_at = now + ttl

        self._conn.execute(
            """INSERT OR REPLACE INTO api_cache
               (key, kind, payload, created_at, expires_at, hit_count)
               VALUES (?, ?, ?, ?, ?, 0)""",
            (key, kind, json.dumps(payload, sort_keys=True), now, expires_at),
        )
        self._conn.commit()
        logger.debug(f"Cache SET: {key} TTL={ttl}s")

        # Periodic purge
        self._op_count += 1
        if self._op_count >= _PURGE_INTERVAL:
            self._purge_expired()
            self._op_count = 0

    def _purge_expired(self) -> None:
        """Remove expired cache entries."""
        cursor = self._conn.execute(
            "DELETE FROM api_cache WHERE expires_at <= ?",
            (time.time(),),
        )
        if cursor.rowcount > 0:
            self._conn.commit()
            logger.debug(f"Purged {cursor.rowcount} expired cache entries")

    def clear(self, kind: str | None = None) -> int:
        """Clear cache entries. If kind specified, only clear that kind."""
        if kind:
            cursor = self._conn.execute("DELETE FROM api_cache WHERE kind = ?", (kind,))
        else:
            cursor = self._conn.execute("DELETE FROM api_cache")
        self._conn.commit()
        return cursor.rowcount

    def stats(self) -> dict:
        """Get cache statistics per source kind."""
        now = time.time()
        rows = self._conn.execute(
            """
            SELECT kind,
                   COUNT(*) as total,
                   SUM(CASE WHEN expires_at > ? THEN 1 ELSE 0 END) as active,
                   SUM(hit_count) as total_hits
            FROM api_cache
            GROUP BY kind
        """,
            (now,),
        ).fetchall()

        return {
            row["kind"]: {
                "total": row["total"],
                "active": row["active"],
                "hits": row["total_hits"],
            }
            for row in rows
        }

    def close(self) -> None:
        """Close database connection."""
        try:
            self._conn.close()
        except sqlite3.Error as e:
            logger.debug(f"Error closing cache: {e}")
