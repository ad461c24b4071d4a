# ngsi_source/core/auth/provider.py
from __future__ import annotations

import math
from abc import ABC, abstractmethod

from ngsi_source.core.auth.models import AccessToken


class TokenProvider(ABC):
    """Source of the token attached when ``use_user_fiware_token`` is set."""

    @abstractmethod
    async def get_token(self) -> AccessToken:
        """Return a token that is valid for at least the leeway window."""
        ...


class StaticTokenProvider(TokenProvider):
    """A fixed, never-expiring token (pre-issued service tokens, tests)."""

    def __init__(self, access_token: str) -> None:
        self._token = AccessToken(access_token=access_token, expires_at=math.inf)

    async def get_token(self) -> AccessToken:
        return self._token
