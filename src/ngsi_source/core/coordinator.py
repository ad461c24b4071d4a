# ngsi_source/core/coordinator.py
"""
Subscription/poll coordinator.

Ties the host (preferences, wiring) to the context broker. One activation
cycle reads the preferences into a ``SourceConfig``, creates the broker
subscription and runs the initial snapshot fetch. Any preference change or
metadata import cancels the cycle and starts a new one.

State machine::

    UNCONFIGURED -> SUBSCRIBING -> ACTIVE -> RECONFIGURING -> SUBSCRIBING
                                          -> TEARING_DOWN  -> UNCONFIGURED

Host callbacks are synchronous; the coroutines they start run on the
current event loop. Every piece of mutable state lives in
``CoordinatorState`` and is only touched from this object's callbacks.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from ngsi_source.contracts.broker import ContextBroker
from ngsi_source.contracts.entity import AttrsFormat, Entity
from ngsi_source.contracts.host import (
    ENTITY_OUTPUT,
    METADATA_INPUT,
    METADATA_OUTPUT,
    NORMALIZED_OUTPUT,
    Preferences,
    Wiring,
)
from ngsi_source.contracts.metadata import METADATA_PREFERENCES
from ngsi_source.core.fetcher import MAX_PAGE, PAGE_SIZE, FetchTask
from ngsi_source.core.preferences import SourceConfig, build_metadata
from ngsi_source.core.subscription.manager import SubscriptionManager
from ngsi_source.core.subscription.relay import NotificationRelay
from ngsi_source.core.tasks import log_task_failure
from ngsi_source.core.translator import to_key_values

logger = logging.getLogger(__name__)

ClientFactory = Callable[[SourceConfig], ContextBroker]


class SourceState(str, Enum):
    UNCONFIGURED = "unconfigured"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    RECONFIGURING = "reconfiguring"
    TEARING_DOWN = "tearing_down"


@dataclass
class CoordinatorState:
    """Mutable state of the current activation cycle."""

    phase: SourceState = SourceState.UNCONFIGURED
    config: SourceConfig | None = None
    client: ContextBroker | None = None
    fetch_task: FetchTask | None = None
    activation: asyncio.Task | None = None
    cycle: int = 0
    closed: bool = False


class NGSISourceCoordinator:
    """
    Example:
        coordinator = NGSISourceCoordinator(
            preferences,
            wiring,
            client_factory=make_client_factory(timeout=30.0),
        )
        coordinator.init()          # registers host callbacks, first cycle
        ...
        await coordinator.shutdown()
    """

    def __init__(
        self,
        preferences: Preferences,
        wiring: Wiring,
        *,
        client_factory: ClientFactory,
        relay: NotificationRelay | None = None,
        page_size: int = PAGE_SIZE,
        max_page: int = MAX_PAGE,
        renew_interval: float | None = None,
        subscription_ttl: float | None = None,
    ) -> None:
        self._prefs = preferences
        self._wiring = wiring
        self._client_factory = client_factory
        self._relay = relay or NotificationRelay()
        self._page_size = page_size
        self._max_page = max_page

        manager_kwargs: dict[str, float] = {}
        if renew_interval is not None:
            manager_kwargs["renew_interval"] = renew_interval
        if subscription_ttl is not None:
            manager_kwargs["ttl"] = subscription_ttl
        self._subscriptions = SubscriptionManager(self._relay, **manager_kwargs)

        self._state = CoordinatorState()

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def phase(self) -> SourceState:
        return self._state.phase

    @property
    def relay(self) -> NotificationRelay:
        return self._relay

    @property
    def subscriptions(self) -> SubscriptionManager:
        return self._subscriptions

    # ------------------------------------------------------------------
    # Host lifecycle
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Register host callbacks and start the first cycle if possible."""
        self._prefs.register_callback(self._on_preferences)
        self._wiring.register_status_callback(self._on_wiring_status)

        if not self._wiring.is_input_connected(METADATA_INPUT):
            self._subscribe()
            self.send_metadata()

        self._wiring.register_callback(METADATA_INPUT, self.import_metadata)

    async def shutdown(self) -> None:
        """Cancel the cycle and delete the subscription; never re-subscribes."""
        state = self._state
        if state.closed:
            return

        state.closed = True
        state.phase = SourceState.TEARING_DOWN
        activation = state.activation
        self._cancel_cycle()

        if activation is not None:
            # failures were already logged by the done callback
            await asyncio.gather(activation, return_exceptions=True)

        await self._subscriptions.close()

        state.client = None
        state.config = None
        state.phase = SourceState.UNCONFIGURED
        logger.info("NGSI source stopped")

    # ------------------------------------------------------------------
    # Activation cycle
    # ------------------------------------------------------------------

    def negotiate_format(self) -> AttrsFormat:
        if self._wiring.is_output_connected(NORMALIZED_OUTPUT):
            return AttrsFormat.NORMALIZED
        return AttrsFormat.KEY_VALUES

    def _subscribe(self) -> asyncio.Task | None:
        """
        Start a new activation cycle from the current preferences.

        Whatever is left of the previous cycle is cancelled first, so only
        one creation sequence is ever in flight.

        Returns:
            The activation task, or None when no entity output is connected.
        """
        state = self._state
        self._cancel_cycle()
        state.client = None
        state.config = None

        if not (
            self._wiring.is_output_connected(ENTITY_OUTPUT)
            or self._wiring.is_output_connected(NORMALIZED_OUTPUT)
        ):
            state.phase = SourceState.UNCONFIGURED
            logger.info("No entity output connected, waiting for wiring changes")
            return None

        config = SourceConfig.from_preferences(self._prefs)
        state.config = config
        state.client = self._client_factory(config)
        state.cycle += 1
        state.phase = SourceState.SUBSCRIBING

        state.activation = asyncio.create_task(
            self._activate(config, state.client),
            name=f"ngsi-source-activation-{state.cycle}",
        )
        state.activation.add_done_callback(log_task_failure)
        return state.activation

    async def _activate(self, config: SourceConfig, client: ContextBroker) -> None:
        attrs_format = self.negotiate_format()

        if config.update_attributes:
            subscription_id = await self._subscriptions.create(
                client, config, attrs_format, self.handle_entities
            )
            if subscription_id is None:
                self._state.phase = SourceState.UNCONFIGURED
                return
        else:
            logger.info(
                "No update attributes configured, retrieving initial values only"
            )

        self._start_fetch(config, client, attrs_format)
        self._state.phase = SourceState.ACTIVE

    def _start_fetch(
        self, config: SourceConfig, client: ContextBroker, attrs_format: AttrsFormat
    ) -> None:
        if self._state.fetch_task is not None:
            self._state.fetch_task.cancel()
        self._state.fetch_task = FetchTask(
            client,
            config,
            attrs_format,
            self.handle_entities,
            page_size=self._page_size,
            max_page=self._max_page,
        ).start()

    def _cancel_cycle(self) -> None:
        state = self._state
        self._subscriptions.cancel_renewal()

        if state.fetch_task is not None:
            state.fetch_task.cancel()
            state.fetch_task = None

        if state.activation is not None:
            if not state.activation.done():
                state.activation.cancel()
            state.activation = None

        self._subscriptions.release()

    def reconfigure(self) -> asyncio.Task | None:
        """Tear the current cycle down and start a new one."""
        if self._state.closed:
            logger.debug("Ignoring reconfiguration after shutdown")
            return None

        self.send_metadata()
        self._state.phase = SourceState.RECONFIGURING
        return self._subscribe()

    # ------------------------------------------------------------------
    # Host callbacks
    # ------------------------------------------------------------------

    def _on_preferences(self, new_values: dict[str, Any]) -> None:
        logger.info("Preferences changed: %s", sorted(new_values))
        self.reconfigure()

    def _on_wiring_status(self) -> None:
        if self._state.closed:
            return
        if self._state.client is None:
            self._subscribe()

    def import_metadata(self, metadata: dict[str, Any] | None) -> None:
        """
        Apply a metadata document received on the metadata input.

        A ``None`` document clears downstream consumers instead.
        """
        if metadata is None:
            for endpoint in (ENTITY_OUTPUT, NORMALIZED_OUTPUT):
                if self._wiring.is_output_connected(endpoint):
                    self._wiring.push_event(endpoint, None)
            return

        for key, preference in METADATA_PREFERENCES:
            value = metadata.get(key)
            if value is not None:
                self._prefs.set(preference, value)

        self.reconfigure()

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def handle_entities(self, attrs_format: AttrsFormat, entities: list[Entity]) -> None:
        """Publish entities on every connected output, translating if needed."""
        if self._wiring.is_output_connected(ENTITY_OUTPUT):
            if attrs_format is AttrsFormat.KEY_VALUES:
                self._wiring.push_event(ENTITY_OUTPUT, entities)
            else:
                self._wiring.push_event(ENTITY_OUTPUT, to_key_values(entities))

        if (
            attrs_format is AttrsFormat.NORMALIZED
            and self._wiring.is_output_connected(NORMALIZED_OUTPUT)
        ):
            self._wiring.push_event(NORMALIZED_OUTPUT, entities)

    def send_metadata(self) -> None:
        if self._wiring.is_output_connected(METADATA_OUTPUT):
            self._wiring.push_event(
                METADATA_OUTPUT, build_metadata(self._prefs).to_event()
            )

    def status(self) -> dict[str, Any]:
        state = self._state
        subscription = self._subscriptions.subscription
        fetch = state.fetch_task
        return {
            "phase": state.phase.value,
            "cycle": state.cycle,
            "server_url": state.config.server_url if state.config else None,
            "subscription": (
                {
                    "id": subscription.id,
                    "attrs_format": subscription.attrs_format.value,
                    "expires_at": subscription.expires_at.isoformat(),
                }
                if subscription
                else None
            ),
            "fetch": (
                {"pages": fetch.pages_fetched, "done": fetch.done}
                if fetch
                else None
            ),
            "notifications": {
                "delivered": self._relay.delivered_count,
                "dropped": self._relay.dropped_count,
            },
        }
