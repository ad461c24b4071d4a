# ngsi_source/api/schemas.py
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Notification(BaseModel):
    """NGSI v2 notification body."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    subscription_id: str = Field(default="", alias="subscriptionId")
    data: list[dict[str, Any]] = Field(default_factory=list)


class PreferencesUpdate(BaseModel):
    values: dict[str, Any]


class PreferencesUpdateResult(BaseModel):
    changed: list[str]
    phase: str


class WiringUpdate(BaseModel):
    outputs: list[str] | None = None
    inputs: list[str] | None = None
