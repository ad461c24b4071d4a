# ngsi_source/contracts/metadata.py
"""
Metadata documents exchanged on the ``ngsimetadata`` endpoints.

The export describes the current source configuration so that downstream
operators can reuse it. The import carries a subset of the same fields and
overwrites the matching preferences.
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class NgsiMetadata(BaseModel):
    """Configuration snapshot published on the metadata output."""

    model_config = ConfigDict(populate_by_name=True)

    types: list[str] = Field(default_factory=list)
    filtered_attributes: str = Field(default="", alias="filteredAttributes")
    update_attributes: list[str] = Field(default_factory=list, alias="updateAttributes")
    auth_type: str = ""
    id_pattern: str = Field(default="", alias="idPattern")
    query: str = ""
    values: bool = False
    server_url: str = Field(default="", alias="serverURL")
    proxy_url: str = Field(default="", alias="proxyURL")
    service_path: str = Field(default="", alias="servicePath")
    tenant: str = ""

    def to_event(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# Metadata import key -> preference name
METADATA_PREFERENCES: tuple[tuple[str, str], ...] = (
    ("serverURL", "ngsi_server"),
    ("proxyURL", "ngsi_proxy"),
    ("use_user_fiware_token", "use_user_fiware_token"),
    ("use_owner_credentials", "use_owner_credentials"),
    ("tenant", "ngsi_tenant"),
    ("servicePath", "ngsi_service_path"),
    ("types", "ngsi_entities"),
    ("idPattern", "ngsi_id_filter"),
    ("query", "query"),
    ("updateAttributes", "ngsi_update_attributes"),
)
