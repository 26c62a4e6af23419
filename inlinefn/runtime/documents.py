"""
Structured document helpers.

Documents are JSON-shaped values: mappings with string keys, lists, and
scalars. The runtime hands functions frozen views of engine-owned documents
and keeps its own thawed copies of whatever a function hands back.

Merge policy (deep_merge):
    - mapping + mapping -> merge recursively by key
    - anything else     -> the override value replaces the base value
                           (lists are replaced as a whole, never merged)

The merge is purely functional: neither input is mutated.
"""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any


def freeze(value: Any) -> Any:
    """Return a read-only deep copy: mappings become mappingproxies, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(item) for item in value)
    return value


def thaw(value: Any) -> Any:
    """Return a mutable deep copy: any mapping becomes a dict, lists and tuples lists."""
    if isinstance(value, Mapping):
        return {key: thaw(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [thaw(item) for item in value]
    return value


def deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """
    Deep-merge `override` into `base`, returning a new dict.

    Later scalar values overwrite earlier ones at the same path; mappings
    merge key by key. A mapping replaces a scalar and a scalar replaces a
    mapping.

    Args:
        base: Accumulated document
        override: Partial document applied on top of it

    Returns:
        A new, fully thawed dict
    """
    result: dict[str, Any] = thaw(base)
    for key, value in override.items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            result[key] = deep_merge(current, value)
        else:
            result[key] = thaw(value)
    return result


def get_path(document: Mapping[str, Any], path: str, default: Any = None) -> Any:
    """Look up a dotted path such as "metadata.annotations" in a document."""
    value: Any = document
    for part in path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return default
        value = value[part]
    return value
