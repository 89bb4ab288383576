"""
Key-value cache storage backed by SQLite.

SQLiteKVCache is the raw store: it reads, writes and evicts rows of the
``api_cache`` table and raises typed CacheError subclasses on failure.
The degrade-on-failure behaviour callers rely on lives in ResponseCache.

Records are ``(key, data, timestamp, expires_at)`` with ``data`` stored as
JSON text (orjson). Expiry sweeps use the ``expires_at`` index; namespace
clears scan keys by prefix.
"""

from __future__ import annotations

import math
import sqlite3
from collections.abc import Callable
from typing import Any

import aiosqlite
import orjson

from respcache.cache.handle import TABLE_NAME, StoreHandle
from respcache.cache.keys import split_key
from respcache.exceptions import MalformedEntryError, SerializationError, StoreIOError
from respcache.logging import get_logger
from respcache.types import CacheEntry, ReadResult, epoch_now

logger = get_logger(__name__)


def _has_non_finite(value: Any) -> bool:
    if isinstance(value, float):
        return not math.isfinite(value)
    if isinstance(value, dict):
        return any(_has_non_finite(v) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(_has_non_finite(v) for v in value)
    return False


class SQLiteKVCache:
    """Async SQLite-backed store of expiring JSON entries."""

    def __init__(
        self,
        handle: StoreHandle,
        clock: Callable[[], float] = epoch_now,
    ) -> None:
        """Initialize the store.

        Args:
            handle: Lazily opened connection owner.
            clock: Returns the current instant in epoch seconds.
        """
        self.handle = handle
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    async def _execute(
        self,
        operation: str,
        sql: str,
        params: tuple[Any, ...] = (),
        key: str | None = None,
    ) -> int:
        """Run a write statement, commit, and return the affected row count."""
        db = await self.handle.acquire()
        try:
            cursor = await db.execute(sql, params)
            rowcount = cursor.rowcount
            await cursor.close()
            await db.commit()
        except sqlite3.Error as e:
            raise StoreIOError(
                f"Cache {operation} failed",
                context={"operation": operation, "key": key, "error": str(e)},
            ) from e
        return max(rowcount, 0)

    async def _fetchall(self, operation: str, sql: str, params: tuple[Any, ...] = ()) -> list[aiosqlite.Row]:
        db = await self.handle.acquire()
        try:
            async with db.execute(sql, params) as cursor:
                return list(await cursor.fetchall())
        except sqlite3.Error as e:
            raise StoreIOError(
                f"Cache {operation} failed",
                context={"operation": operation, "error": str(e)},
            ) from e

    async def read(self, key: str) -> ReadResult[Any]:
        """Look up ``key``.

        Returns:
            A hit with the decoded payload, a miss, or a stale marker.

        Raises:
            StoreUnavailableError: If the store cannot be opened.
            StoreIOError: If the lookup fails.
            MalformedEntryError: If the stored record has an unexpected shape.
        """
        rows = await self._fetchall(
            "read",
            f"SELECT key, data, timestamp, expires_at FROM {TABLE_NAME} WHERE key = ?",
            (key,),
        )
        if not rows:
            return ReadResult.miss()

        entry = self._row_to_entry(rows[0])
        if entry.is_expired(self.now()):
            return ReadResult.stale(entry.expires_at)
        return ReadResult.hit(entry.data)

    async def write(self, key: str, entry: CacheEntry[Any]) -> None:
        """Insert or fully replace the entry stored under ``key``.

        Raises:
            SerializationError: If ``entry.data`` is not JSON-serializable or
                holds a non-finite float, which orjson would write as null.
            StoreUnavailableError: If the store cannot be opened.
            StoreIOError: If the write fails.
        """
        if _has_non_finite(entry.data):
            raise SerializationError(
                "Cache payload contains NaN or infinity",
                context={"key": key},
            )
        try:
            payload = orjson.dumps(entry.data).decode("utf-8")
        except TypeError as e:
            raise SerializationError(
                "Cache payload is not JSON-serializable",
                context={"key": key, "type": type(entry.data).__name__},
            ) from e

        await self._execute(
            "write",
            f"""
            INSERT OR REPLACE INTO {TABLE_NAME} (key, data, timestamp, expires_at)
            VALUES (?, ?, ?, ?)
            """,
            (key, payload, entry.timestamp, entry.expires_at),
            key=key,
        )

    async def delete(self, key: str) -> int:
        """Delete ``key``; a missing key deletes nothing."""
        return await self._execute(
            "delete", f"DELETE FROM {TABLE_NAME} WHERE key = ?", (key,), key=key
        )

    async def delete_stale(self, key: str, expires_at: float) -> int:
        """Delete ``key`` only if it still holds the entry expiring at ``expires_at``.

        A newer write under the same key has a different expiry and is kept.
        """
        return await self._execute(
            "delete",
            f"DELETE FROM {TABLE_NAME} WHERE key = ? AND expires_at = ?",
            (key, expires_at),
            key=key,
        )

    async def delete_expired(self, now: float | None = None) -> int:
        """Delete every entry due at or before ``now``."""
        cutoff = self.now() if now is None else now
        return await self._execute(
            "sweep", f"DELETE FROM {TABLE_NAME} WHERE expires_at <= ?", (cutoff,)
        )

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix`` (case-sensitive)."""
        # substr() instead of LIKE: LIKE is case-insensitive and treats _ and % as wildcards
        return await self._execute(
            "clear_prefix",
            f"DELETE FROM {TABLE_NAME} WHERE substr(key, 1, ?) = ?",
            (len(prefix), prefix),
        )

    async def clear(self) -> int:
        """Delete every entry."""
        return await self._execute("clear", f"DELETE FROM {TABLE_NAME}")

    async def keys(self) -> list[str]:
        rows = await self._fetchall("keys", f"SELECT key FROM {TABLE_NAME} ORDER BY key")
        return [row["key"] for row in rows]

    async def count(self) -> int:
        """Get total count of stored entries, expired ones included."""
        rows = await self._fetchall("count", f"SELECT COUNT(*) FROM {TABLE_NAME}")
        return rows[0][0] if rows else 0

    async def stats(self) -> dict[str, Any]:
        """Get statistics about stored entries.

        Returns:
            Dict with total, expired and per-namespace counts.
        """
        stats: dict[str, Any] = {}
        stats["total"] = await self.count()

        rows = await self._fetchall(
            "stats",
            f"SELECT COUNT(*) FROM {TABLE_NAME} WHERE expires_at < ?",
            (self.now(),),
        )
        stats["expired"] = rows[0][0] if rows else 0

        by_namespace: dict[str, int] = {}
        for key in await self.keys():
            namespace, _ = split_key(key)
            by_namespace[namespace] = by_namespace.get(namespace, 0) + 1
        stats["by_namespace"] = by_namespace

        return stats

    def _row_to_entry(self, row: aiosqlite.Row) -> CacheEntry[Any]:
        """Convert a database row to a CacheEntry."""
        key = row["key"]
        try:
            data = orjson.loads(row["data"])
            timestamp = float(row["timestamp"])
            expires_at = float(row["expires_at"])
            return CacheEntry(data=data, timestamp=timestamp, expires_at=expires_at)
        except (orjson.JSONDecodeError, TypeError, ValueError) as e:
            raise MalformedEntryError(
                "Stored cache entry is malformed",
                context={"key": key, "error": str(e)},
            ) from e
