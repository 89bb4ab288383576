"""
Lazily opened handle to the cache database.

The handle moves through UNOPENED -> OPENING -> READY. Callers that ask for
the connection while an open is in flight await that same open; a failed
open drops back to UNOPENED so the next caller retries.
"""

from __future__ import annotations

import asyncio
import sqlite3
from collections.abc import Callable
from pathlib import Path

import aiosqlite
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from respcache.exceptions import StoreUnavailableError
from respcache.logging import get_logger
from respcache.types import HandleState

logger = get_logger(__name__)

SCHEMA_VERSION = 1
TABLE_NAME = "api_cache"
EXPIRES_INDEX = "idx_api_cache_expires_at"

_SCHEMA_STATEMENTS = (
    f"""
    CREATE TABLE IF NOT EXISTS {TABLE_NAME} (
        key TEXT PRIMARY KEY,
        data TEXT NOT NULL,
        timestamp REAL NOT NULL,
        expires_at REAL NOT NULL
    )
    """,
    f"CREATE INDEX IF NOT EXISTS {EXPIRES_INDEX} ON {TABLE_NAME}(expires_at)",
    f"PRAGMA user_version = {SCHEMA_VERSION}",
)


class StoreHandle:
    """Single-flight, retry-capable owner of the aiosqlite connection."""

    def __init__(
        self,
        db_path: str | Path,
        *,
        busy_timeout: float = 5.0,
        open_attempts: int = 3,
        retry_wait: wait_base | None = None,
        on_ready: Callable[[], None] | None = None,
    ) -> None:
        """Initialize the handle without touching the filesystem.

        Args:
            db_path: SQLite database file.
            busy_timeout: Seconds SQLite waits on a locked database.
            open_attempts: Attempts made for transient open errors.
            retry_wait: tenacity wait strategy between open attempts.
            on_ready: Called after every successful open.
        """
        self.db_path = Path(db_path)
        self.busy_timeout = busy_timeout
        self.open_attempts = open_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.1, min=0.1, max=2)
        self._on_ready = on_ready
        self._db: aiosqlite.Connection | None = None
        self._opening: asyncio.Task[aiosqlite.Connection] | None = None
        self._state = HandleState.UNOPENED
        self._closing = False
        self.open_count = 0

    @property
    def state(self) -> HandleState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return self._state is HandleState.READY

    async def acquire(self) -> aiosqlite.Connection:
        """Return the open connection, opening it on first use.

        Raises:
            StoreUnavailableError: If the store cannot be opened.
        """
        if self._db is not None:
            return self._db

        if self._opening is None:
            self._state = HandleState.OPENING
            self._opening = asyncio.get_running_loop().create_task(self._open())

        # Shielded so one cancelled waiter does not abort the shared open
        return await asyncio.shield(self._opening)

    async def _open(self) -> aiosqlite.Connection:
        try:
            db = await self._connect_with_retry()
        except BaseException:
            self._opening = None
            self._state = HandleState.UNOPENED
            raise

        self._db = db
        self._opening = None
        self._state = HandleState.READY
        self.open_count += 1
        logger.info("Cache store opened", db_path=str(self.db_path))

        # close() is waiting on this open and shuts the connection next
        if self._on_ready is not None and not self._closing:
            self._on_ready()
        return db

    async def _connect_with_retry(self) -> aiosqlite.Connection:
        attempts = 0
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(sqlite3.OperationalError),
                stop=stop_after_attempt(self.open_attempts),
                wait=self._retry_wait,
                reraise=True,
            ):
                with attempt:
                    attempts += 1
                    return await self._connect()
        except StoreUnavailableError:
            raise
        except (sqlite3.Error, OSError) as e:
            logger.debug(
                "Failed to open cache store",
                db_path=str(self.db_path),
                attempts=attempts,
                error=str(e),
            )
            raise StoreUnavailableError(
                "Cache store could not be opened",
                context={"db_path": str(self.db_path), "attempts": attempts},
            ) from e
        # AsyncRetrying with reraise=True either returns or raises
        raise StoreUnavailableError("Cache store could not be opened")

    async def _connect(self) -> aiosqlite.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        db = await aiosqlite.connect(self.db_path, timeout=self.busy_timeout)
        try:
            db.row_factory = aiosqlite.Row
            await self._ensure_schema(db)
        except BaseException:
            await db.close()
            raise
        return db

    async def _ensure_schema(self, db: aiosqlite.Connection) -> None:
        async with db.execute("PRAGMA user_version") as cursor:
            row = await cursor.fetchone()
        version = row[0] if row else 0

        if version > SCHEMA_VERSION:
            raise StoreUnavailableError(
                "Cache store was written by a newer schema version",
                context={"db_path": str(self.db_path), "version": version},
            )
        if version == SCHEMA_VERSION:
            return

        for statement in _SCHEMA_STATEMENTS:
            await db.execute(statement)
        await db.commit()
        logger.debug("Cache schema created", version=SCHEMA_VERSION)

    async def close(self) -> None:
        """Close the connection; the next acquire() reopens it."""
        if self._opening is not None:
            self._closing = True
            try:
                await self._opening
            except (StoreUnavailableError, sqlite3.Error, OSError):
                pass
            finally:
                self._closing = False

        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.debug("Cache store closed", db_path=str(self.db_path))
        self._state = HandleState.UNOPENED
