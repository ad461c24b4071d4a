# ngsi_source/api/notifications.py
"""
Notification endpoint the context broker pushes subscription updates to.
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from ngsi_source.api.dependencies import get_relay
from ngsi_source.api.schemas import Notification
from ngsi_source.core.subscription.relay import NOTIFICATIONS_PATH, NotificationRelay

logger = logging.getLogger(__name__)

router = APIRouter(prefix=NOTIFICATIONS_PATH, tags=["notifications"])


@router.post("/{callback_id}", status_code=204)
async def receive_notification(
    callback_id: str,
    notification: Notification,
    relay: NotificationRelay = Depends(get_relay),
) -> Response:
    payload = notification.model_dump(by_alias=True)
    if not relay.deliver(callback_id, payload):
        raise HTTPException(status_code=404, detail="Unknown notification callback")
    logger.debug(
        "Notification delivered: subscription=%s entities=%d",
        notification.subscription_id,
        len(notification.data),
    )
    return Response(status_code=204)
