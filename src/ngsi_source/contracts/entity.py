# ngsi_source/contracts/entity.py
"""
Entity contracts shared by the fetcher, the notification relay and the
wiring outputs.

An entity travels as a plain JSON mapping. Depending on the negotiated
attributes format it is either flattened (key-values) or carries one
attribute object per attribute (normalized)::

    keyValues:   {"id": "e1", "type": "T", "a": 5}
    normalized:  {"id": "e1", "type": "T", "a": {"type": "Number", "value": 5, "metadata": {}}}
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

Entity = dict[str, Any]

RESERVED_KEYS = ("id", "type")


class AttrsFormat(str, Enum):
    """Attribute representation requested from the context broker."""

    NORMALIZED = "normalized"
    KEY_VALUES = "keyValues"


@dataclass(frozen=True)
class EntityPage:
    """One page of a paginated entity listing.

    Attributes:
        results: Entities returned for this page.
        count: Total number of matching entities reported by the broker.
    """

    results: list[Entity] = field(default_factory=list)
    count: int = 0
