"""
Core types for the response cache.

This module defines the data structures shared by the cache layers:
- Enums for cache namespaces and store handle states
- Frozen dataclasses for stored entries (CacheEntry) and read outcomes (ReadResult)
- Clock helper returning epoch seconds
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def epoch_now() -> float:
    """Get the current instant as epoch seconds."""
    return time.time()


class CacheNamespace(str, Enum):
    """Namespaces of the responses cached by the application services."""

    BOARD_MEMBERS = "boardMembers"
    ICP_PROFILE = "icpProfile"
    PERSONA_BREAKDOWNS = "personaBreakdowns"
    COMPETITOR_ANALYSIS = "competitorAnalysis"
    REPORT = "report"
    DEFAULT = "default"


class HandleState(str, Enum):
    """Lifecycle states of the persistent store handle."""

    UNOPENED = "unopened"
    OPENING = "opening"
    READY = "ready"


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """Immutable cached value with its creation and expiry instants.

    Both instants are epoch seconds. ``data`` is opaque to the cache.
    """

    data: T
    timestamp: float
    expires_at: float

    def __post_init__(self) -> None:
        if self.expires_at <= self.timestamp:
            raise ValueError(
                f"expires_at ({self.expires_at}) must be later than timestamp ({self.timestamp})"
            )

    @classmethod
    def create(cls, data: T, ttl_seconds: float, now: float | None = None) -> CacheEntry[T]:
        """Create an entry that expires ``ttl_seconds`` after ``now``."""
        created = epoch_now() if now is None else now
        return cls(data=data, timestamp=created, expires_at=created + ttl_seconds)

    def is_expired(self, now: float) -> bool:
        """An entry is stale once ``now`` is strictly past its expiry."""
        return now > self.expires_at


@dataclass(frozen=True)
class ReadResult(Generic[T]):
    """Outcome of a raw store lookup.

    ``found`` is False for missing keys. A stale entry is reported with
    ``is_stale=True``, no value, and the expiry instant that was seen, so the
    caller can remove exactly that row and never a newer write under the key.
    """

    value: T | None = None
    found: bool = False
    is_stale: bool = False
    expires_at: float | None = None

    @classmethod
    def miss(cls) -> ReadResult[Any]:
        return cls()

    @classmethod
    def stale(cls, expires_at: float) -> ReadResult[Any]:
        return cls(found=True, is_stale=True, expires_at=expires_at)

    @classmethod
    def hit(cls, value: T) -> ReadResult[T]:
        return cls(value=value, found=True)

    @property
    def is_hit(self) -> bool:
        return self.found and not self.is_stale
