# ngsi_source/core/subscription/manager.py
"""
Context broker subscription lifecycle.

The manager owns at most one live subscription. It creates it, renews its
expiry on a fixed interval and deletes it on release. Every broker failure
is logged where it happens; the operator keeps running without a subscription
until the next reconfiguration.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from ngsi_source.contracts.broker import ContextBroker
from ngsi_source.contracts.entity import AttrsFormat, Entity
from ngsi_source.core.ngsi.errors import NGSIError, ProxyConnectionError
from ngsi_source.core.preferences import SourceConfig
from ngsi_source.core.subscription.relay import NotificationRelay

logger = logging.getLogger(__name__)

EntitiesCallback = Callable[[AttrsFormat, list[Entity]], None]

RENEW_INTERVAL = 2 * 60 * 60
SUBSCRIPTION_TTL = 3 * 60 * 60


def format_expires(moment: datetime) -> str:
    """ISO 8601 UTC timestamp with millisecond precision, as NGSI expects."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


@dataclass
class ActiveSubscription:
    """A subscription the broker acknowledged and that has not been released."""

    id: str
    client: ContextBroker
    callback_id: str
    attrs_format: AttrsFormat
    expires_at: datetime


class SubscriptionManager:
    """
    Example:
        manager = SubscriptionManager(relay)
        sub_id = await manager.create(client, config, AttrsFormat.KEY_VALUES, on_entities)
        ...
        manager.release()      # deletion runs in the background
        await manager.close()  # on shutdown, waits for pending deletions
    """

    def __init__(
        self,
        relay: NotificationRelay,
        *,
        renew_interval: float = RENEW_INTERVAL,
        ttl: float = SUBSCRIPTION_TTL,
    ) -> None:
        self._relay = relay
        self._renew_interval = renew_interval
        self._ttl = ttl

        self._active: ActiveSubscription | None = None
        self._renewal_task: asyncio.Task | None = None
        self._pending_deletes: set[asyncio.Task] = set()

    @property
    def subscription(self) -> ActiveSubscription | None:
        return self._active

    @property
    def subscription_id(self) -> str | None:
        return self._active.id if self._active else None

    @property
    def renewal_scheduled(self) -> bool:
        return self._renewal_task is not None and not self._renewal_task.done()

    @property
    def pending_deletes(self) -> int:
        return len(self._pending_deletes)

    def _expiry(self) -> datetime:
        return datetime.now(timezone.utc) + timedelta(seconds=self._ttl)

    def build_request(
        self,
        config: SourceConfig,
        attrs_format: AttrsFormat,
        notification_url: str,
        expires_at: datetime,
    ) -> dict[str, Any]:
        subject: dict[str, Any] = {"entities": config.entity_filters()}
        condition = config.condition()
        if condition is not None:
            subject["condition"] = condition
        return {
            "description": "ngsi source subscription",
            "subject": subject,
            "notification": {
                "http": {"url": notification_url},
                "attrsFormat": attrs_format.value,
            },
            "expires": format_expires(expires_at),
        }

    async def create(
        self,
        client: ContextBroker,
        config: SourceConfig,
        attrs_format: AttrsFormat,
        on_entities: EntitiesCallback,
    ) -> str | None:
        """
        Create the subscription and schedule its renewal.

        Returns:
            The broker-assigned id, or None if the subscription could not be
            created (the failure is logged).
        """
        if self._active is not None:
            logger.warning(
                "Subscription '%s' still active, releasing it first", self._active.id
            )
            self.release()

        if not config.proxy_url:
            logger.warning("Error connecting with the NGSI Proxy: no proxy URL configured")
            return None

        callback_id = self._relay.register(
            lambda entities: on_entities(attrs_format, entities)
        )
        expires_at = self._expiry()
        request = self.build_request(
            config,
            attrs_format,
            self._relay.callback_url(config.proxy_url, callback_id),
            expires_at,
        )

        # The broker may commit the subscription even if this cycle is
        # cancelled, so the request outlives the caller.
        request_task = asyncio.ensure_future(
            client.create_subscription(request, skip_initial_notification=True)
        )
        try:
            subscription_id = await asyncio.shield(request_task)
        except ProxyConnectionError as exc:
            self._relay.unregister(callback_id)
            logger.warning("Error connecting with the NGSI Proxy: %s", exc.cause or exc)
            return None
        except NGSIError as exc:
            self._relay.unregister(callback_id)
            logger.warning(
                "Error creating subscription in the context broker server: %s", exc
            )
            return None
        except asyncio.CancelledError:
            self._relay.unregister(callback_id)
            self._track(
                self._discard(client, request_task),
                name=f"ngsi-subscription-discard-{callback_id}",
            )
            raise

        self._active = ActiveSubscription(
            id=subscription_id,
            client=client,
            callback_id=callback_id,
            attrs_format=attrs_format,
            expires_at=expires_at,
        )
        self._renewal_task = asyncio.create_task(
            self._renew_periodically(), name="ngsi-subscription-renewal"
        )
        logger.info("Subscription created successfully (id: %s)", subscription_id)
        return subscription_id

    async def renew(self, subscription_id: str | None = None) -> bool:
        """
        Push the subscription expiry forward.

        A tick for a subscription that was already released (or for an id
        that is no longer the active one) does nothing.
        """
        active = self._active
        if active is None or (subscription_id is not None and subscription_id != active.id):
            logger.debug("No active subscription to refresh (id: %s)", subscription_id)
            return False

        expires_at = self._expiry()
        try:
            await active.client.update_subscription(
                active.id, {"expires": format_expires(expires_at)}
            )
        except NGSIError as exc:
            logger.warning("Error refreshing current context broker subscription: %s", exc)
            return False

        active.expires_at = expires_at
        logger.info("Subscription refreshed successfully (id: %s)", active.id)
        return True

    async def _renew_periodically(self) -> None:
        while True:
            await asyncio.sleep(self._renew_interval)
            try:
                await self.renew()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Unexpected error refreshing subscription (id: %s)",
                    self.subscription_id,
                )

    def cancel_renewal(self) -> None:
        if self._renewal_task is not None:
            self._renewal_task.cancel()
            self._renewal_task = None

    def release(self) -> asyncio.Task | None:
        """
        Forget the active subscription and delete it in the background.

        The id is cleared immediately, whatever the outcome of the deletion.
        """
        self.cancel_renewal()
        active, self._active = self._active, None
        if active is None:
            return None

        self._relay.unregister(active.callback_id)
        return self._track(
            self.delete(active.client, active.id),
            name=f"ngsi-subscription-delete-{active.id}",
        )

    def _track(self, coro, *, name: str) -> asyncio.Task:
        task = asyncio.create_task(coro, name=name)
        self._pending_deletes.add(task)
        task.add_done_callback(self._pending_deletes.discard)
        return task

    async def _discard(self, client: ContextBroker, request_task: asyncio.Future) -> bool:
        """Delete a subscription whose creation finished after its cycle was cancelled."""
        try:
            subscription_id = await request_task
        except NGSIError as exc:
            logger.debug("Abandoned subscription request failed: %s", exc)
            return False
        logger.info(
            "Subscription created for a cancelled cycle, deleting it (id: %s)",
            subscription_id,
        )
        return await self.delete(client, subscription_id)

    async def delete(self, client: ContextBroker, subscription_id: str) -> bool:
        try:
            await client.delete_subscription(subscription_id)
        except NGSIError as exc:
            logger.warning(
                "Error cancelling context broker subscription (id: %s): %s",
                subscription_id,
                exc,
            )
            return False
        logger.info("Subscription cancelled successfully (id: %s)", subscription_id)
        return True

    async def close(self) -> None:
        """Release the subscription and wait for every pending deletion."""
        self.release()
        if self._pending_deletes:
            await asyncio.gather(*list(self._pending_deletes), return_exceptions=True)
