# ngsi_source/contracts/host.py
"""
Host platform contracts.

The operator never talks to a concrete mashup runtime. It receives
preferences and wiring endpoints through these protocols, each event name
holding a single registered handler invoked synchronously by the host.
"""
from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable

# Wiring endpoint names
ENTITY_OUTPUT = "entityOutput"
NORMALIZED_OUTPUT = "normalizedOutput"
METADATA_OUTPUT = "ngsimetadata"
METADATA_INPUT = "ngsimetadataInput"

PreferencesCallback = Callable[[dict[str, Any]], None]
InputCallback = Callable[[Any], None]
StatusCallback = Callable[[], None]


@runtime_checkable
class Preferences(Protocol):
    """Preference storage owned by the host."""

    def get(self, name: str) -> Any:
        """Return the current value of a preference."""
        ...

    def set(self, name: str, value: Any) -> None:
        """Overwrite a preference without notifying the registered callback."""
        ...

    def register_callback(self, callback: PreferencesCallback) -> None:
        """Register the handler invoked with changed values on user edits."""
        ...


@runtime_checkable
class Wiring(Protocol):
    """Wiring endpoints (event bus) owned by the host."""

    def is_output_connected(self, endpoint: str) -> bool: ...

    def is_input_connected(self, endpoint: str) -> bool: ...

    def push_event(self, endpoint: str, data: Any) -> None:
        """Send data through an output endpoint."""
        ...

    def register_callback(self, endpoint: str, callback: InputCallback) -> None:
        """Register the handler for an input endpoint (replaces any previous one)."""
        ...

    def register_status_callback(self, callback: StatusCallback) -> None:
        """Register the handler invoked when endpoint connections change."""
        ...
