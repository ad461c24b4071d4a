# ngsi_source/core/ngsi/client.py
"""
Thin async client for the NGSI v2 API.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

import httpx

from ngsi_source.contracts.entity import EntityPage
from ngsi_source.core.auth import TokenProvider
from ngsi_source.core.preferences import SourceConfig
from ngsi_source.core.ngsi.errors import (
    BrokerConnectionError,
    BrokerRejectedError,
    NGSIError,
    ProxyConnectionError,
)

logger = logging.getLogger(__name__)

TOTAL_COUNT_HEADER = "Fiware-Total-Count"


class NgsiV2Client:
    """HTTP client for an NGSI v2 context broker.

    Contract::

        POST   /v2/subscriptions            -> 201, Location: /v2/subscriptions/<id>
        PATCH  /v2/subscriptions/<id>       -> 204
        DELETE /v2/subscriptions/<id>       -> 204
        GET    /v2/entities?options=count   -> 200, Fiware-Total-Count: <n>
    """

    def __init__(
        self,
        *,
        base_url: str,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        token_provider: TokenProvider | None = None,
    ) -> None:
        self._base = base_url.rstrip("/")
        self._headers = dict(headers or {})
        self._timeout = timeout
        self._token_provider = token_provider

    @property
    def base_url(self) -> str:
        return self._base

    async def _request_headers(self) -> dict[str, str]:
        headers = dict(self._headers)
        if self._token_provider:
            token = await self._token_provider.get_token()
            headers.update(token.headers())
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any | None = None,
    ) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            try:
                resp = await client.request(
                    method,
                    f"{self._base}{path}",
                    params=params,
                    json=json,
                    headers=await self._request_headers(),
                )
                resp.raise_for_status()
            except httpx.HTTPStatusError as ex:
                logger.warning(
                    "Request failed method=%s path=%s status=%s",
                    method,
                    path,
                    ex.response.status_code,
                )
                raise BrokerRejectedError.from_response(ex.response) from ex
            except httpx.ProxyError as ex:
                raise ProxyConnectionError(f"Proxy error: {ex}", cause=ex) from ex
            except httpx.HTTPError as ex:
                raise BrokerConnectionError(
                    f"Cannot reach context broker at {self._base}: {ex}"
                ) from ex

        return resp

    async def create_subscription(
        self,
        subscription: dict[str, Any],
        *,
        skip_initial_notification: bool = True,
    ) -> str:
        params = {"options": "skipInitialNotification"} if skip_initial_notification else None
        resp = await self._request(
            "POST", "/v2/subscriptions", params=params, json=subscription
        )
        location = resp.headers.get("Location", "")
        subscription_id = location.rstrip("/").rsplit("/", 1)[-1]
        if not subscription_id:
            raise NGSIError("Context broker did not return a subscription id")
        return subscription_id

    async def update_subscription(
        self, subscription_id: str, changes: dict[str, Any]
    ) -> None:
        await self._request("PATCH", f"/v2/subscriptions/{subscription_id}", json=changes)

    async def delete_subscription(self, subscription_id: str) -> None:
        await self._request("DELETE", f"/v2/subscriptions/{subscription_id}")

    async def list_entities(
        self,
        *,
        id_pattern: str | None = None,
        type: str | None = None,
        q: str | None = None,
        limit: int = 100,
        offset: int = 0,
        key_values: bool = False,
    ) -> EntityPage:
        params: dict[str, Any] = {
            "limit": limit,
            "offset": offset,
            "options": "count,keyValues" if key_values else "count",
        }
        if id_pattern:
            params["idPattern"] = id_pattern
        if type:
            params["type"] = type
        if q:
            params["q"] = q

        resp = await self._request("GET", "/v2/entities", params=params)
        try:
            results = resp.json()
        except ValueError as ex:
            logger.warning(
                "Non-JSON entity listing from %s (content-type=%s)",
                self._base,
                resp.headers.get("content-type"),
            )
            raise NGSIError("Unexpected entity listing payload") from ex
        if not isinstance(results, list):
            raise NGSIError("Unexpected entity listing payload")

        try:
            count = int(resp.headers.get(TOTAL_COUNT_HEADER, len(results)))
        except ValueError:
            count = len(results)

        return EntityPage(results=results, count=count)


def make_client_factory(
    *,
    timeout: float = 30.0,
    token_provider: TokenProvider | None = None,
) -> Callable[[SourceConfig], NgsiV2Client]:
    """Build the per-cycle client factory used by the coordinator."""

    def factory(config: SourceConfig) -> NgsiV2Client:
        provider = None
        if config.use_user_fiware_token:
            if token_provider is None:
                logger.warning(
                    "use_user_fiware_token is enabled but no token provider is configured"
                )
            provider = token_provider
        return NgsiV2Client(
            base_url=config.server_url,
            headers=config.request_headers(),
            timeout=timeout,
            token_provider=provider,
        )

    return factory
