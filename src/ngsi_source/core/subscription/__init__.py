"""Subscription lifecycle and notification routing."""

from ngsi_source.core.subscription.manager import (
    ActiveSubscription,
    SubscriptionManager,
    format_expires,
)
from ngsi_source.core.subscription.relay import NotificationRelay

__all__ = [
    "ActiveSubscription",
    "SubscriptionManager",
    "NotificationRelay",
    "format_expires",
]
