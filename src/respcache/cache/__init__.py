"""
Cache package for provider response persistence.

This package provides:
- Key builder (keys.py): Normalized namespace-prefixed cache keys
- TTL table (ttl.py): Per-namespace time-to-live
- Store handle (handle.py): Single-flight lazily opened SQLite connection
- Key-value store (kv_cache.py): Raw SQLite-backed entry storage
- Response cache (service.py): Degrade-on-failure interface used by services
"""

from respcache.cache.base import CacheProtocol
from respcache.cache.keys import build_key, namespace_prefix
from respcache.cache.service import ResponseCache
from respcache.cache.ttl import NAMESPACE_TTLS, TTLPolicy

__all__ = [
    "CacheProtocol",
    "NAMESPACE_TTLS",
    "ResponseCache",
    "TTLPolicy",
    "build_key",
    "namespace_prefix",
]
