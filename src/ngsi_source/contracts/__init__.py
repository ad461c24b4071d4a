"""Public contracts for the NGSI source operator."""
from ngsi_source.contracts.broker import ContextBroker
from ngsi_source.contracts.entity import AttrsFormat, Entity, EntityPage
from ngsi_source.contracts.host import (
    ENTITY_OUTPUT,
    METADATA_INPUT,
    METADATA_OUTPUT,
    NORMALIZED_OUTPUT,
    Preferences,
    Wiring,
)
from ngsi_source.contracts.metadata import METADATA_PREFERENCES, NgsiMetadata

__all__ = [
    "ContextBroker",
    "AttrsFormat", "Entity", "EntityPage",
    "Preferences", "Wiring",
    "ENTITY_OUTPUT", "NORMALIZED_OUTPUT", "METADATA_OUTPUT", "METADATA_INPUT",
    "NgsiMetadata", "METADATA_PREFERENCES",
]
