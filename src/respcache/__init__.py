"""Expiring key-value response cache for the application's service layer."""

from respcache.cache import ResponseCache, build_key
from respcache.types import CacheEntry, CacheNamespace

__version__ = "0.1.0"

__all__ = [
    "CacheEntry",
    "CacheNamespace",
    "ResponseCache",
    "build_key",
    "__version__",
]
