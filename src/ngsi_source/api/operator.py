# ngsi_source/api/operator.py
"""
Host glue endpoints: health and status, preference edits, metadata input,
wiring connections and the last event published on each output.
"""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from ngsi_source.api.dependencies import get_coordinator, get_preferences, get_wiring
from ngsi_source.api.schemas import (
    PreferencesUpdate,
    PreferencesUpdateResult,
    WiringUpdate,
)
from ngsi_source.contracts.host import METADATA_INPUT
from ngsi_source.core.coordinator import NGSISourceCoordinator
from ngsi_source.core.host import MemoryPreferences, MemoryWiring

router = APIRouter()


@router.get("/health")
async def health(
    coordinator: NGSISourceCoordinator = Depends(get_coordinator),
) -> dict:
    return {"status": "healthy", "phase": coordinator.phase.value}


@router.get("/status")
async def status(
    coordinator: NGSISourceCoordinator = Depends(get_coordinator),
) -> dict[str, Any]:
    return coordinator.status()


@router.get("/preferences")
async def read_preferences(
    preferences: MemoryPreferences = Depends(get_preferences),
) -> dict[str, Any]:
    return preferences.as_dict()


@router.put("/preferences", response_model=PreferencesUpdateResult)
async def update_preferences(
    update: PreferencesUpdate,
    preferences: MemoryPreferences = Depends(get_preferences),
    coordinator: NGSISourceCoordinator = Depends(get_coordinator),
) -> PreferencesUpdateResult:
    changed = preferences.update(update.values)
    return PreferencesUpdateResult(changed=sorted(changed), phase=coordinator.phase.value)


@router.post("/metadata", status_code=202)
async def import_metadata(
    metadata: dict[str, Any] | None = Body(default=None),
    wiring: MemoryWiring = Depends(get_wiring),
    coordinator: NGSISourceCoordinator = Depends(get_coordinator),
) -> dict[str, str]:
    if not wiring.deliver(METADATA_INPUT, metadata):
        raise HTTPException(status_code=409, detail="Metadata input not registered")
    return {"phase": coordinator.phase.value}


@router.put("/wiring")
async def update_wiring(
    update: WiringUpdate,
    wiring: MemoryWiring = Depends(get_wiring),
    coordinator: NGSISourceCoordinator = Depends(get_coordinator),
) -> dict[str, str]:
    wiring.set_connections(outputs=update.outputs, inputs=update.inputs)
    return {"phase": coordinator.phase.value}


@router.get("/outputs/{endpoint}")
async def last_output(
    endpoint: str,
    wiring: MemoryWiring = Depends(get_wiring),
) -> dict[str, Any]:
    events = wiring.events_for(endpoint)
    if not events:
        raise HTTPException(status_code=404, detail=f"No event published on '{endpoint}'")
    return {"endpoint": endpoint, "count": len(events), "last": events[-1]}
