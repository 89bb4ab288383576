"""
Base classes for caching.

CacheProtocol is the interface application services program against. Every
implementation must degrade instead of raising: reads miss, writes and
evictions become no-ops.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any


class CacheProtocol(ABC):
    """Abstract interface for cache implementations."""

    @abstractmethod
    async def get(self, key: str, namespace: str | Enum | None = None) -> Any | None:
        """Get a value from the cache."""
        ...

    @abstractmethod
    async def set(self, key: str, data: Any, namespace: str | Enum | None = None) -> None:
        """Set a value in the cache."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Delete a value from the cache."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if an unexpired value exists in the cache."""
        ...

    @abstractmethod
    async def clear_expired(self) -> int:
        """Remove every expired entry."""
        ...

    @abstractmethod
    async def clear_all(self) -> int:
        """Remove every entry."""
        ...

    @abstractmethod
    async def clear_by_namespace(self, namespace: str | Enum) -> int:
        """Remove every entry of a namespace."""
        ...
