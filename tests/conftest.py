# tests/conftest.py
from __future__ import annotations

import asyncio
from typing import Any

import pytest

from ngsi_source.contracts.entity import EntityPage
from ngsi_source.contracts.host import ENTITY_OUTPUT, METADATA_OUTPUT
from ngsi_source.core.coordinator import NGSISourceCoordinator
from ngsi_source.core.host import MemoryPreferences, MemoryWiring
from ngsi_source.core.ngsi.errors import BrokerRejectedError
from ngsi_source.core.preferences import PREFERENCE_DEFAULTS
from ngsi_source.core.translator import normalized_to_key_values


def make_entity(index: int, type_: str = "Room") -> dict[str, Any]:
    return {
        "id": f"{type_}:{index}",
        "type": type_,
        "temperature": {"type": "Number", "value": 20 + index % 10, "metadata": {}},
    }


class FakeBroker:
    """In-memory context broker recording every call."""

    def __init__(
        self,
        entities: list[dict[str, Any]] | None = None,
        *,
        total: int | None = None,
    ) -> None:
        self.entities = entities
        self.total = total
        self.subscriptions: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.created = 0

        self.create_error: Exception | None = None
        self.update_error: Exception | None = None
        self.delete_error: Exception | None = None
        self.list_errors: dict[int, Exception] = {}
        self.list_gate: asyncio.Event | None = None
        # when set, create commits the subscription and then waits before replying
        self.create_gate: asyncio.Event | None = None

    def calls_to(self, name: str) -> list[Any]:
        return [args for call, args in self.calls if call == name]

    async def create_subscription(self, subscription, *, skip_initial_notification=True):
        self.calls.append(("create", subscription))
        await asyncio.sleep(0)
        if self.create_error is not None:
            raise self.create_error
        self.created += 1
        subscription_id = f"sub-{self.created}"
        self.subscriptions[subscription_id] = dict(subscription)
        if self.create_gate is not None:
            await self.create_gate.wait()
        return subscription_id

    async def update_subscription(self, subscription_id, changes):
        self.calls.append(("update", (subscription_id, changes)))
        if self.update_error is not None:
            raise self.update_error
        if subscription_id not in self.subscriptions:
            raise BrokerRejectedError(404, "NotFound", "The requested subscription has not been found")
        self.subscriptions[subscription_id].update(changes)

    async def delete_subscription(self, subscription_id):
        self.calls.append(("delete", subscription_id))
        await asyncio.sleep(0)
        if self.delete_error is not None:
            raise self.delete_error
        if self.subscriptions.pop(subscription_id, None) is None:
            raise BrokerRejectedError(404, "NotFound", "The requested subscription has not been found")

    async def list_entities(
        self,
        *,
        id_pattern=None,
        type=None,
        q=None,
        limit=100,
        offset=0,
        key_values=False,
    ):
        self.calls.append(("list", {"offset": offset, "limit": limit, "type": type, "q": q, "key_values": key_values}))
        if self.list_gate is not None:
            await self.list_gate.wait()
        else:
            await asyncio.sleep(0)
        if offset in self.list_errors:
            raise self.list_errors[offset]

        if self.entities is not None:
            count = len(self.entities)
            results = self.entities[offset : offset + limit]
        else:
            count = self.total or 0
            results = [make_entity(i) for i in range(offset, min(offset + limit, count))]

        if key_values:
            results = [normalized_to_key_values(e) for e in results]
        return EntityPage(results=results, count=count)


@pytest.fixture
def broker() -> FakeBroker:
    return FakeBroker([make_entity(i) for i in range(3)])


@pytest.fixture
def preferences() -> MemoryPreferences:
    return MemoryPreferences(
        {
            **PREFERENCE_DEFAULTS,
            "ngsi_server": "http://orion:1026",
            "ngsi_proxy": "http://source:8000",
            "ngsi_entities": "Room",
            "ngsi_update_attributes": "temperature",
        }
    )


@pytest.fixture
def wiring() -> MemoryWiring:
    return MemoryWiring(connected_outputs=[ENTITY_OUTPUT, METADATA_OUTPUT])


@pytest.fixture
def coordinator(preferences, wiring, broker) -> NGSISourceCoordinator:
    return NGSISourceCoordinator(
        preferences,
        wiring,
        client_factory=lambda config: broker,
    )


async def settle(coordinator: NGSISourceCoordinator) -> None:
    """Wait for the current activation and its initial fetch to finish."""
    state = coordinator.state
    if state.activation is not None:
        await asyncio.gather(state.activation, return_exceptions=True)
    if state.fetch_task is not None:
        await state.fetch_task.wait()
    # let fire-and-forget deletions run
    for _ in range(3):
        await asyncio.sleep(0)
