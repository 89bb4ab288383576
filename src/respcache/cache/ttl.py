"""
Namespace to time-to-live table.

The table is static configuration: it is built once and exposed read-only.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import timedelta
from enum import Enum
from types import MappingProxyType

from respcache.cache.keys import namespace_label
from respcache.exceptions import ConfigurationError
from respcache.types import CacheNamespace

DEFAULT_TTL = timedelta(hours=24)

NAMESPACE_TTLS: Mapping[str, timedelta] = MappingProxyType({
    CacheNamespace.BOARD_MEMBERS.value: timedelta(hours=24),
    CacheNamespace.ICP_PROFILE.value: timedelta(hours=24),
    CacheNamespace.PERSONA_BREAKDOWNS.value: timedelta(days=7),
    CacheNamespace.COMPETITOR_ANALYSIS.value: timedelta(days=7),
    CacheNamespace.REPORT.value: timedelta(days=30),
})


class TTLPolicy:
    """Resolves the TTL of a namespace, falling back to a default."""

    def __init__(
        self,
        ttls: Mapping[str, timedelta] | None = None,
        default: timedelta = DEFAULT_TTL,
    ) -> None:
        table = dict(NAMESPACE_TTLS if ttls is None else ttls)
        for namespace, ttl in [*table.items(), ("default", default)]:
            if ttl <= timedelta(0):
                raise ConfigurationError(
                    "TTL must be a positive duration",
                    context={"namespace": namespace, "ttl": str(ttl)},
                )
        self._ttls: Mapping[str, timedelta] = MappingProxyType(table)
        self._default = default

    @classmethod
    def with_default_seconds(cls, seconds: int) -> TTLPolicy:
        """Standard table with a configured default TTL."""
        return cls(default=timedelta(seconds=seconds))

    @property
    def default(self) -> timedelta:
        return self._default

    @property
    def table(self) -> Mapping[str, timedelta]:
        return self._ttls

    def ttl_for(self, namespace: str | Enum | None) -> timedelta:
        if namespace is None:
            return self._default
        return self._ttls.get(namespace_label(namespace), self._default)

    def ttl_seconds(self, namespace: str | Enum | None) -> float:
        return self.ttl_for(namespace).total_seconds()
