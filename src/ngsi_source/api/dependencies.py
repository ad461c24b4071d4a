# ngsi_source/api/dependencies.py
"""
FastAPI dependencies resolving the runtime objects stored on ``app.state``.
"""
from __future__ import annotations

from fastapi import HTTPException, Request

from ngsi_source.core.coordinator import NGSISourceCoordinator
from ngsi_source.core.host import MemoryPreferences, MemoryWiring
from ngsi_source.core.subscription.relay import NotificationRelay


def _state_attr(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise HTTPException(status_code=503, detail=f"{name} not initialised")
    return value


def get_coordinator(request: Request) -> NGSISourceCoordinator:
    return _state_attr(request, "coordinator")


def get_relay(request: Request) -> NotificationRelay:
    return _state_attr(request, "relay")


def get_preferences(request: Request) -> MemoryPreferences:
    return _state_attr(request, "preferences")


def get_wiring(request: Request) -> MemoryWiring:
    return _state_attr(request, "wiring")
