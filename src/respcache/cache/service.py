"""
Response cache used by the application services.

ResponseCache is constructed once at application start and passed to every
service that caches provider responses. It never raises: reads degrade to a
miss, writes and evictions to a no-op, and every failure is logged.

Usage:
    cache = ResponseCache(get_settings())
    key = cache.build_key(CacheNamespace.ICP_PROFILE, industry, titles)
    profile = await cache.get_or_set(key, generate_profile, CacheNamespace.ICP_PROFILE)
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Awaitable, Callable, Coroutine
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

from tenacity.wait import wait_base

from respcache.cache.base import CacheProtocol
from respcache.cache.handle import StoreHandle
from respcache.cache.keys import build_key, namespace_label, namespace_prefix
from respcache.cache.kv_cache import SQLiteKVCache
from respcache.cache.ttl import TTLPolicy
from respcache.config import Settings, get_settings
from respcache.exceptions import CacheError, MalformedEntryError
from respcache.logging import get_logger, log_context, setup_logging
from respcache.types import CacheEntry, epoch_now

logger = get_logger(__name__)

T = TypeVar("T")

# Anything the store layer can surface; none of it reaches callers
_CACHE_FAILURES = (CacheError, sqlite3.Error, OSError)


def _label(namespace: str | Enum | None) -> str | None:
    return namespace_label(namespace) if namespace is not None else None


class ResponseCache(CacheProtocol):
    """Expiring key-value cache over a local SQLite store."""

    build_key = staticmethod(build_key)

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        db_path: str | Path | None = None,
        ttl_policy: TTLPolicy | None = None,
        clock: Callable[[], float] = epoch_now,
        sweep_on_open: bool | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        """Initialize the cache. Nothing is opened until first use.

        Args:
            settings: Cache settings; loaded from the environment when omitted.
            db_path: Overrides the database path from settings.
            ttl_policy: Overrides the namespace TTL table.
            clock: Returns the current instant in epoch seconds.
            sweep_on_open: Overrides SWEEP_ON_OPEN.
            retry_wait: tenacity wait strategy between store open attempts.
        """
        self.settings = settings or get_settings()
        setup_logging(self.settings.LOG_LEVEL, self.settings.LOG_FILE)
        self.ttl_policy = ttl_policy or TTLPolicy.with_default_seconds(
            self.settings.DEFAULT_TTL_SECONDS
        )
        self._clock = clock
        self._sweep_on_open = (
            self.settings.SWEEP_ON_OPEN if sweep_on_open is None else sweep_on_open
        )
        self._background: set[asyncio.Task[Any]] = set()

        self.handle = StoreHandle(
            db_path or self.settings.db_path,
            busy_timeout=self.settings.BUSY_TIMEOUT_SECONDS,
            open_attempts=self.settings.OPEN_RETRY_ATTEMPTS,
            retry_wait=retry_wait,
            on_ready=self._on_store_ready,
        )
        self.store = SQLiteKVCache(self.handle, clock=clock)

    async def __aenter__(self) -> ResponseCache:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # Background tasks

    def _spawn(self, coro: Coroutine[Any, Any, Any], description: str) -> asyncio.Task[Any]:
        """Run ``coro`` detached; its failure is logged and nothing else."""
        task = asyncio.get_running_loop().create_task(coro)
        task.set_name(description)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task[Any]) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning(
                "Background cache task failed", task=task.get_name(), error=str(exc)
            )

    def _on_store_ready(self) -> None:
        if self._sweep_on_open:
            self._spawn(self.store.delete_expired(), "startup-sweep")

    async def drain(self) -> None:
        """Wait for detached cleanup tasks to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def close(self) -> None:
        """Finish background work and close the store."""
        await self.drain()
        await self.handle.close()

    # Read path

    async def get(self, key: str, namespace: str | Enum | None = None) -> Any | None:
        """Return the cached value for ``key``, or None on miss, expiry or failure.

        An expired entry is removed in the background.
        """
        with log_context(operation="get", namespace=_label(namespace)):
            try:
                result = await self.store.read(key)
            except MalformedEntryError as e:
                logger.warning("Ignoring malformed cache entry", key=key, error=str(e))
                return None
            except _CACHE_FAILURES as e:
                logger.warning("Cache read failed", key=key, error=str(e))
                return None

            if result.is_stale:
                logger.debug("Cache entry expired", key=key)
                self._spawn(
                    self.store.delete_stale(key, result.expires_at), f"expire:{key}"
                )
                return None
            if not result.found:
                logger.debug("Cache miss", key=key)
                return None

            logger.debug("Cache hit", key=key)
            return result.value

    async def exists(self, key: str) -> bool:
        """Check whether an unexpired entry is stored under ``key``."""
        with log_context(operation="exists"):
            try:
                result = await self.store.read(key)
            except _CACHE_FAILURES as e:
                logger.warning("Cache read failed", key=key, error=str(e))
                return False
            return result.is_hit

    # Write path

    async def set(self, key: str, data: Any, namespace: str | Enum | None = None) -> None:
        """Store ``data`` under ``key`` with the namespace's TTL.

        Any prior entry under the same key is replaced.
        """
        with log_context(operation="set", namespace=_label(namespace)):
            ttl_seconds = self.ttl_policy.ttl_seconds(namespace)
            entry = CacheEntry.create(data, ttl_seconds, now=self._clock())
            try:
                await self.store.write(key, entry)
            except _CACHE_FAILURES as e:
                logger.warning("Cache write failed", key=key, error=str(e))
                return
            logger.debug("Cached entry", key=key, ttl_seconds=ttl_seconds)

    async def get_or_set(
        self,
        key: str,
        factory: Callable[[], Awaitable[T]],
        namespace: str | Enum | None = None,
    ) -> T:
        """Return the cached value, or compute, cache and return it.

        Exceptions raised by ``factory`` propagate. A ``None`` result is
        returned without being cached.
        """
        cached = await self.get(key, namespace)
        if cached is not None:
            return cached

        value = await factory()
        if value is not None:
            await self.set(key, value, namespace)
        return value

    # Eviction

    async def _evict(self, operation: str, evict: Awaitable[int]) -> int:
        try:
            removed = await evict
        except _CACHE_FAILURES as e:
            logger.warning(f"Cache {operation} failed", error=str(e))
            return 0
        logger.debug(f"Cache {operation} removed entries", removed=removed)
        return removed

    async def delete(self, key: str) -> int:
        """Delete the entry for ``key``. Missing keys are a no-op."""
        with log_context(operation="delete"):
            return await self._evict("delete", self.store.delete(key))

    async def clear_expired(self) -> int:
        """Delete every entry whose expiry has passed."""
        with log_context(operation="clear_expired"):
            removed = await self._evict("sweep", self.store.delete_expired())
            if removed:
                logger.info("Removed expired cache entries", removed=removed)
            return removed

    async def clear_all(self) -> int:
        """Delete every entry."""
        with log_context(operation="clear_all"):
            removed = await self._evict("clear", self.store.clear())
            logger.info("Cache cleared", removed=removed)
            return removed

    async def clear_by_namespace(self, namespace: str | Enum) -> int:
        """Delete every entry whose key belongs to ``namespace``."""
        with log_context(operation="clear_by_namespace", namespace=_label(namespace)):
            return await self._evict(
                "namespace clear", self.store.delete_prefix(namespace_prefix(namespace))
            )

    # Introspection

    async def stats(self) -> dict[str, Any]:
        """Get statistics about the cache.

        Returns:
            Dict with total, expired and per-namespace counts plus the store
            state. Counts are zero when the store is unavailable.
        """
        stats: dict[str, Any] = {"total": 0, "expired": 0, "by_namespace": {}}
        with log_context(operation="stats"):
            try:
                stats.update(await self.store.stats())
            except _CACHE_FAILURES as e:
                logger.warning("Cache stats failed", error=str(e))
        stats["state"] = self.handle.state.value
        stats["db_path"] = str(self.handle.db_path)
        return stats
