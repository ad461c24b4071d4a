"""NGSI source operator: context broker subscriptions republished as wiring events."""

__version__ = "0.1.0"
