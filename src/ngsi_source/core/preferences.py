# ngsi_source/core/preferences.py
"""
Source configuration derived from host preferences.

A ``SourceConfig`` is built once per activation cycle and never mutated;
a preference change builds a fresh one.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from ngsi_source.contracts.host import Preferences
from ngsi_source.contracts.metadata import NgsiMetadata

PREFERENCE_DEFAULTS: dict[str, Any] = {
    "ngsi_server": "http://localhost:1026",
    "ngsi_proxy": "http://localhost:8000",
    "use_owner_credentials": False,
    "use_user_fiware_token": False,
    "ngsi_tenant": "",
    "ngsi_service_path": "/",
    "ngsi_entities": "",
    "ngsi_id_filter": "",
    "query": "",
    "ngsi_update_attributes": "",
    "buffering": False,
}

_ATTRS_SEPARATOR = re.compile(r",\s*")


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ",".join(str(v).strip() for v in value)
    return str(value).strip()


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _split(value: str, separator: re.Pattern[str] | str = ",") -> tuple[str, ...]:
    parts = separator.split(value) if isinstance(separator, re.Pattern) else value.split(separator)
    return tuple(p.strip() for p in parts if p.strip())


@dataclass(frozen=True)
class SourceConfig:
    """
    Immutable configuration of one activation cycle.

    Attributes:
        server_url: Context broker base URL.
        proxy_url: Public base URL of the notification relay.
        tenant: ``FIWARE-Service`` value (empty for the default tenant).
        service_path: ``FIWARE-ServicePath`` value.
        types: Entity types to match; empty matches any type.
        id_pattern: Regular expression entity ids must match.
        query: Simple Query Language filter (``q``), if any.
        update_attributes: Attributes whose changes trigger notifications.
        buffering: Emit the initial snapshot as a single batch.
        use_owner_credentials: Ask the proxy to inject the workspace owner token.
        use_user_fiware_token: Attach a token from the configured provider.
    """

    server_url: str
    proxy_url: str = ""
    tenant: str = ""
    service_path: str = ""
    types: tuple[str, ...] = ()
    id_pattern: str = ".*"
    query: str | None = None
    update_attributes: tuple[str, ...] = ()
    buffering: bool = False
    use_owner_credentials: bool = False
    use_user_fiware_token: bool = False

    @classmethod
    def from_preferences(cls, prefs: Preferences) -> SourceConfig:
        return cls(
            server_url=_text(prefs.get("ngsi_server")),
            proxy_url=_text(prefs.get("ngsi_proxy")),
            tenant=_text(prefs.get("ngsi_tenant")),
            service_path=_text(prefs.get("ngsi_service_path")),
            types=_split(_text(prefs.get("ngsi_entities"))),
            id_pattern=_text(prefs.get("ngsi_id_filter")) or ".*",
            query=_text(prefs.get("query")) or None,
            update_attributes=_split(
                _text(prefs.get("ngsi_update_attributes")), _ATTRS_SEPARATOR
            ),
            buffering=_flag(prefs.get("buffering")),
            use_owner_credentials=_flag(prefs.get("use_owner_credentials")),
            use_user_fiware_token=_flag(prefs.get("use_user_fiware_token")),
        )

    @property
    def type_filter(self) -> str | None:
        return ",".join(self.types) or None

    def request_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.use_owner_credentials:
            headers["FIWARE-OAuth-Token"] = "true"
            headers["FIWARE-OAuth-Header-Name"] = "X-Auth-Token"
            headers["FIWARE-OAuth-Source"] = "workspaceowner"
        if self.tenant:
            headers["FIWARE-Service"] = self.tenant
        if self.service_path and self.service_path != "/":
            headers["FIWARE-ServicePath"] = self.service_path
        return headers

    def entity_filters(self) -> list[dict[str, str]]:
        """Subscription subject: one entry per type, or a single id pattern."""
        if not self.types:
            return [{"idPattern": self.id_pattern}]
        return [{"idPattern": self.id_pattern, "type": t} for t in self.types]

    def condition(self) -> dict[str, Any] | None:
        if self.query is None and not self.update_attributes:
            return None
        condition: dict[str, Any] = {}
        if self.update_attributes:
            condition["attrs"] = list(self.update_attributes)
        if self.query is not None:
            condition["expression"] = {"q": self.query}
        return condition


def build_metadata(prefs: Preferences) -> NgsiMetadata:
    """Describe the current preferences for the metadata output."""
    return NgsiMetadata(
        types=list(_split(_text(prefs.get("ngsi_entities")))),
        update_attributes=list(_split(_text(prefs.get("ngsi_update_attributes")))),
        id_pattern=_text(prefs.get("ngsi_id_filter")),
        query=_text(prefs.get("query")),
        server_url=_text(prefs.get("ngsi_server")),
        proxy_url=_text(prefs.get("ngsi_proxy")),
        service_path=_text(prefs.get("ngsi_service_path")),
        tenant=_text(prefs.get("ngsi_tenant")),
    )
