"""Structural deep-freeze helpers.

Frozen values use read-only built-in containers: mappings become
MappingProxyType, sequences become tuples and sets become frozensets.
Leaf values are deep-copied, so non-JSON values such as datetimes and
bytes are preserved as-is.
"""

import copy
from collections.abc import Mapping, Set
from types import MappingProxyType
from typing import Any


def deep_freeze(value: Any) -> Any:
    """Return a recursively immutable copy of ``value``."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: deep_freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(deep_freeze(item) for item in value)
    if isinstance(value, Set):
        return frozenset(deep_freeze(item) for item in value)
    return copy.deepcopy(value)


def thaw(value: Any) -> Any:
    """Return a recursively mutable copy of ``value``.

    Accepts frozen and plain containers alike, which makes it usable as a
    structural deep clone for configuration trees. Set elements are
    copied unchanged and stay hashable.
    """
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(item) for item in value]
    if isinstance(value, Set):
        return {copy.deepcopy(item) for item in value}
    return copy.deepcopy(value)


def is_frozen(value: Any) -> bool:
    """Check whether every container inside ``value`` is read-only."""
    if isinstance(value, MappingProxyType):
        return all(is_frozen(item) for item in value.values())
    if isinstance(value, tuple):
        return all(is_frozen(item) for item in value)
    if isinstance(value, frozenset):
        return True
    if isinstance(value, (Mapping, list, Set)):
        return False
    return True
