# ngsi_source/contracts/broker.py
"""
Context broker contract.

The coordinator only needs four operations from an NGSI v2 broker. Any
object implementing them (the HTTP client, a test double) can be plugged
in through the coordinator's client factory.
"""
from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from ngsi_source.contracts.entity import EntityPage


@runtime_checkable
class ContextBroker(Protocol):
    async def create_subscription(
        self,
        subscription: dict[str, Any],
        *,
        skip_initial_notification: bool = True,
    ) -> str:
        """Create a subscription, returns the broker-assigned id."""
        ...

    async def update_subscription(
        self, subscription_id: str, changes: dict[str, Any]
    ) -> None: ...

    async def delete_subscription(self, subscription_id: str) -> None: ...

    async def list_entities(
        self,
        *,
        id_pattern: str | None = None,
        type: str | None = None,
        q: str | None = None,
        limit: int = 100,
        offset: int = 0,
        key_values: bool = False,
    ) -> EntityPage:
        """List matching entities, with the total count of matches."""
        ...
