"""
Custom exception hierarchy for the response cache.

All exceptions inherit from CacheError, which provides optional context
for structured error handling and logging. None of these are meant to reach
application code: ResponseCache converts them into misses and no-ops.
"""

from __future__ import annotations

from typing import Any


class CacheError(Exception):
    """Base exception for all cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(CacheError):
    """Raised when configuration is invalid.

    Examples:
        - CACHE_DB_NAME containing a path separator
        - A TTL table entry that is not a positive duration
    """

    pass


class StoreUnavailableError(CacheError):
    """Raised when the persistent store cannot be opened.

    Context should include:
        - db_path: The database file that was being opened
        - attempts: Number of open attempts made
    """

    pass


class StoreIOError(CacheError):
    """Raised when a statement fails on an otherwise open store.

    Context should include:
        - operation: The store operation (read, write, delete, ...)
        - key: The cache key, when the operation targets one
    """

    pass


class MalformedEntryError(CacheError):
    """Raised when a stored record does not have the expected shape."""

    pass


class SerializationError(CacheError):
    """Raised when a payload cannot be encoded as JSON."""

    pass
