# ngsi_source/core/subscription/relay.py
"""
In-process notification relay.

Every live subscription registers one callback here and gives the broker
``{proxy_url}/notifications/{callback_id}`` as its notification URL. The
HTTP layer hands incoming payloads to ``deliver``; payloads for unknown or
released callbacks are dropped.
"""
from __future__ import annotations

import logging
from typing import Any, Callable
from uuid import uuid4

from ngsi_source.contracts.entity import Entity

logger = logging.getLogger(__name__)

NotificationCallback = Callable[[list[Entity]], None]

NOTIFICATIONS_PATH = "/notifications"


class NotificationRelay:
    def __init__(self) -> None:
        self._callbacks: dict[str, NotificationCallback] = {}
        self._delivered = 0
        self._dropped = 0

    def __len__(self) -> int:
        return len(self._callbacks)

    def __contains__(self, callback_id: object) -> bool:
        return callback_id in self._callbacks

    @property
    def delivered_count(self) -> int:
        return self._delivered

    @property
    def dropped_count(self) -> int:
        return self._dropped

    def register(self, callback: NotificationCallback) -> str:
        callback_id = uuid4().hex
        self._callbacks[callback_id] = callback
        logger.debug("Registered notification callback '%s'", callback_id)
        return callback_id

    def unregister(self, callback_id: str) -> bool:
        found = self._callbacks.pop(callback_id, None) is not None
        if found:
            logger.debug("Unregistered notification callback '%s'", callback_id)
        return found

    @staticmethod
    def callback_url(proxy_url: str, callback_id: str) -> str:
        return f"{proxy_url.rstrip('/')}{NOTIFICATIONS_PATH}/{callback_id}"

    def deliver(self, callback_id: str, notification: dict[str, Any]) -> bool:
        """
        Route a broker notification to its callback.

        Args:
            callback_id: Id embedded in the notification URL.
            notification: NGSI v2 notification body (``subscriptionId``, ``data``).

        Returns:
            True if a callback consumed the notification.
        """
        callback = self._callbacks.get(callback_id)
        if callback is None:
            self._dropped += 1
            logger.info(
                "Dropping notification for unknown callback '%s' (subscription %s)",
                callback_id,
                notification.get("subscriptionId"),
            )
            return False

        data = notification.get("data") or []
        self._delivered += 1
        callback(list(data))
        return True
