# ngsi_source/core/auth/models.py
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

AUTH_TOKEN_HEADER = "X-Auth-Token"


@dataclass
class AccessToken:
    """OAuth2 access token sent to the context broker as ``X-Auth-Token``."""

    access_token: str
    expires_at: float
    refresh_token: str | None = None

    @classmethod
    def from_response(cls, payload: dict[str, Any]) -> AccessToken:
        """Build a token from a token endpoint JSON response."""
        return cls(
            access_token=payload["access_token"],
            expires_at=time.time() + float(payload.get("expires_in", 300)),
            refresh_token=payload.get("refresh_token"),
        )

    def is_valid(self, leeway: int = 30) -> bool:
        return time.time() < (self.expires_at - leeway)

    def headers(self) -> dict[str, str]:
        return {AUTH_TOKEN_HEADER: self.access_token}
