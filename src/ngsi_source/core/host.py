# ngsi_source/core/host.py
"""
In-memory host platform.

Stands in for the mashup runtime when the operator runs as a standalone
service: preferences live in a dict, output endpoints record what they
receive and optionally forward it to listeners.
"""
from __future__ import annotations

import logging
from collections import defaultdict, deque
from typing import Any, Callable, Iterable

from ngsi_source.contracts.host import (
    InputCallback,
    PreferencesCallback,
    StatusCallback,
)

logger = logging.getLogger(__name__)

OutputListener = Callable[[Any], None]


class MemoryPreferences:
    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})
        self._callback: PreferencesCallback | None = None

    def get(self, name: str) -> Any:
        if name not in self._values:
            raise KeyError(f"Unknown preference '{name}'")
        return self._values[name]

    def set(self, name: str, value: Any) -> None:
        self._values[name] = value

    def register_callback(self, callback: PreferencesCallback) -> None:
        self._callback = callback

    def update(self, values: dict[str, Any]) -> dict[str, Any]:
        """
        Apply a user edit and notify the registered callback.

        Returns:
            The subset of values that actually changed.
        """
        changed = {k: v for k, v in values.items() if self._values.get(k) != v}
        self._values.update(changed)
        if changed and self._callback is not None:
            self._callback(changed)
        return changed

    def as_dict(self) -> dict[str, Any]:
        return dict(self._values)


class MemoryWiring:
    def __init__(
        self,
        *,
        connected_outputs: Iterable[str] = (),
        connected_inputs: Iterable[str] = (),
        history: int = 1000,
    ) -> None:
        self._outputs = set(connected_outputs)
        self._inputs = set(connected_inputs)
        self._input_callbacks: dict[str, InputCallback] = {}
        self._status_callback: StatusCallback | None = None
        self._listeners: dict[str, list[OutputListener]] = defaultdict(list)
        self.events: deque[tuple[str, Any]] = deque(maxlen=history)

    def is_output_connected(self, endpoint: str) -> bool:
        return endpoint in self._outputs

    def is_input_connected(self, endpoint: str) -> bool:
        return endpoint in self._inputs

    def push_event(self, endpoint: str, data: Any) -> None:
        if endpoint not in self._outputs:
            logger.debug("Output '%s' not connected, event discarded", endpoint)
            return
        self.events.append((endpoint, data))
        for listener in self._listeners[endpoint]:
            listener(data)

    def events_for(self, endpoint: str) -> list[Any]:
        return [data for name, data in self.events if name == endpoint]

    def add_listener(self, endpoint: str, listener: OutputListener) -> None:
        self._listeners[endpoint].append(listener)

    def register_callback(self, endpoint: str, callback: InputCallback) -> None:
        self._input_callbacks[endpoint] = callback

    def register_status_callback(self, callback: StatusCallback) -> None:
        self._status_callback = callback

    def deliver(self, endpoint: str, data: Any) -> bool:
        """Feed data into an input endpoint, as a connected upstream would."""
        callback = self._input_callbacks.get(endpoint)
        if callback is None:
            return False
        callback(data)
        return True

    def set_connections(
        self,
        *,
        outputs: Iterable[str] | None = None,
        inputs: Iterable[str] | None = None,
    ) -> None:
        """Change endpoint connections and fire the status callback."""
        if outputs is not None:
            self._outputs = set(outputs)
        if inputs is not None:
            self._inputs = set(inputs)
        if self._status_callback is not None:
            self._status_callback()
