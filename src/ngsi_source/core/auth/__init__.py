# ngsi_source/core/auth/__init__.py
"""
Token provider factory for outgoing NGSI requests.
"""
from __future__ import annotations

import logging

from ngsi_source.core.auth.models import AccessToken
from ngsi_source.core.auth.oidc import OidcClientCredentialsProvider
from ngsi_source.core.auth.provider import StaticTokenProvider, TokenProvider

logger = logging.getLogger(__name__)

__all__ = [
    "AccessToken",
    "TokenProvider",
    "StaticTokenProvider",
    "OidcClientCredentialsProvider",
    "create_token_provider",
]


def create_token_provider(
    *,
    token_url: str | None = None,
    client_id: str | None = None,
    client_secret: str | None = None,
    scope: str | None = None,
    timeout: float = 10.0,
) -> TokenProvider | None:
    """Create an OIDC client-credentials token provider.

    Returns ``None`` when ``token_url`` is empty, meaning user tokens
    cannot be attached to requests in this environment.
    """
    if not token_url:
        logger.info("No OIDC token_url configured, token provider disabled")
        return None

    if not client_id or not client_secret:
        logger.warning(
            "OIDC token_url set but client_id/client_secret missing, "
            "token provider disabled"
        )
        return None

    return OidcClientCredentialsProvider(
        token_url=token_url,
        client_id=client_id,
        client_secret=client_secret,
        scope=scope or None,
        timeout=timeout,
    )
