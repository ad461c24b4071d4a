# ngsi_source/core/translator.py
"""Normalized → key-values entity translation."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Iterable

from ngsi_source.contracts.entity import RESERVED_KEYS, Entity


def normalized_to_key_values(entity: Mapping[str, Any]) -> Entity:
    """
    Flatten a normalized entity.

    ``id`` and ``type`` are copied verbatim; every other attribute object is
    replaced by its ``value``. Values that are not attribute objects pass
    through unchanged.

    Example:
        >>> normalized_to_key_values({"id": "e1", "type": "T", "a": {"value": 5}})
        {'id': 'e1', 'type': 'T', 'a': 5}
    """
    result: Entity = {}
    for key, attribute in entity.items():
        if key in RESERVED_KEYS or not isinstance(attribute, Mapping):
            result[key] = attribute
        else:
            result[key] = attribute.get("value")
    return result


def to_key_values(entities: Iterable[Mapping[str, Any]]) -> list[Entity]:
    return [normalized_to_key_values(e) for e in entities]
