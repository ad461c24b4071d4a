# ngsi_source/core/auth/oidc.py
import logging

import httpx

from ngsi_source.core.auth.models import AccessToken
from ngsi_source.core.auth.provider import TokenProvider

logger = logging.getLogger(__name__)


class OidcClientCredentialsProvider(TokenProvider):
    """Client-credentials grant against a fixed token endpoint."""

    def __init__(
        self,
        *,
        token_url: str,
        client_id: str,
        client_secret: str,
        scope: str | None = None,
        timeout: float = 10.0,
    ):
        self._token_url = token_url
        self._client_id = client_id
        self._client_secret = client_secret
        self._scope = scope
        self._timeout = timeout

        self._token: AccessToken | None = None

    async def get_token(self) -> AccessToken:
        if self._token and self._token.is_valid():
            return self._token

        if self._token and self._token.refresh_token:
            try:
                self._token = await self._request(
                    {
                        "grant_type": "refresh_token",
                        "refresh_token": self._token.refresh_token,
                    }
                )
                return self._token
            except httpx.HTTPError as exc:
                logger.warning("Token refresh failed, re-authenticating: %s", exc)

        data = {"grant_type": "client_credentials"}
        if self._scope:
            data["scope"] = self._scope
        self._token = await self._request(data)
        return self._token

    async def _request(self, data: dict[str, str]) -> AccessToken:
        form = {
            **data,
            "client_id": self._client_id,
            "client_secret": self._client_secret,
        }
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            r = await client.post(self._token_url, data=form)
            r.raise_for_status()
            payload = r.json()

        return AccessToken.from_response(payload)
