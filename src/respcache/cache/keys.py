"""
Cache key construction.

Keys have the form ``<namespace>:<p1>|<p2>|...``. Parameters are
normalized so that logically equivalent inputs (different casing, stray
whitespace, missing optional fields) collapse onto one key.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Union

NAMESPACE_SEPARATOR = ":"
PARAM_SEPARATOR = "|"
# Multi-valued parameters (e.g. a list of company sizes) are flattened with this
LIST_SEPARATOR = ","

KeyParam = Union[str, int, float, Iterable[str], None]


def namespace_label(namespace: str | Enum) -> str:
    """Plain string form of a namespace given as str or enum member."""
    if isinstance(namespace, Enum):
        return str(namespace.value)
    return namespace


def namespace_prefix(namespace: str | Enum) -> str:
    """Return the prefix shared by every key of ``namespace``."""
    return f"{namespace_label(namespace)}{NAMESPACE_SEPARATOR}"


def normalize_param(param: KeyParam) -> str:
    """Normalize one key parameter; absent values normalize to ''."""
    if param is None:
        return ""
    if isinstance(param, str):
        text = param
    elif isinstance(param, Iterable):
        text = LIST_SEPARATOR.join(str(p) for p in param if p is not None)
    else:
        text = str(param)
    return text.lower().strip()


def build_key(namespace: str | Enum, *params: KeyParam) -> str:
    """Build a normalized cache key.

    Args:
        namespace: Key namespace (also selects the TTL).
        *params: Key parameters. ``None`` and empty values are dropped.

    Returns:
        The composite key, e.g. ``"icpProfile:saas|cto"``.
    """
    normalized = [normalize_param(p) for p in params]
    joined = PARAM_SEPARATOR.join(p for p in normalized if p)
    return f"{namespace_prefix(namespace)}{joined}"


def split_key(key: str) -> tuple[str, str]:
    """Split a key into ``(namespace, params)``.

    Keys without a separator are reported under the ``default`` namespace.
    """
    namespace, sep, params = key.partition(NAMESPACE_SEPARATOR)
    if not sep:
        return "default", key
    return namespace, params
