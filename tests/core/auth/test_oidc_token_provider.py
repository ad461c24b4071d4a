# tests/core/auth/test_oidc_token_provider.py
import pytest
import httpx

from ngsi_source.core.auth import (
    OidcClientCredentialsProvider,
    StaticTokenProvider,
    create_token_provider,
)


@pytest.mark.asyncio
async def test_oidc_token_refresh(monkeypatch):
    grants = []

    async def handler(request: httpx.Request):
        if not request.url.path.endswith("/token"):
            raise AssertionError(f"Unexpected URL {request.url}")

        form = dict(
            pair.split("=", 1) for pair in request.content.decode().split("&")
        )
        grants.append(form["grant_type"])
        if len(grants) == 1:
            return httpx.Response(
                200,
                json={
                    "access_token": "token1",
                    "expires_in": 1,  # inside the validity leeway
                    "refresh_token": "refresh1",
                },
            )
        assert form["refresh_token"] == "refresh1"
        return httpx.Response(
            200,
            json={
                "access_token": "token2",
                "expires_in": 300,
            },
        )

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient

    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        lambda **kw: real_client(transport=transport, **kw),
    )

    provider = OidcClientCredentialsProvider(
        token_url="http://issuer/token",
        client_id="cid",
        client_secret="secret",
    )

    t1 = await provider.get_token()
    t2 = await provider.get_token()
    t3 = await provider.get_token()

    assert t1.access_token == "token1"
    assert t2.access_token == "token2"
    assert t3 is t2
    assert grants == ["client_credentials", "refresh_token"]


@pytest.mark.asyncio
async def test_failed_refresh_falls_back_to_client_credentials(monkeypatch):
    grants = []

    async def handler(request: httpx.Request):
        grant = "refresh_token" if b"grant_type=refresh_token" in request.content else "client_credentials"
        grants.append(grant)
        if grant == "refresh_token":
            return httpx.Response(400, json={"error": "invalid_grant"})
        return httpx.Response(
            200,
            json={"access_token": f"token{len(grants)}", "expires_in": 0, "refresh_token": "r"},
        )

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        httpx,
        "AsyncClient",
        lambda **kw: real_client(transport=transport, **kw),
    )

    provider = OidcClientCredentialsProvider(
        token_url="http://issuer/token", client_id="cid", client_secret="secret"
    )

    await provider.get_token()
    token = await provider.get_token()

    assert grants == ["client_credentials", "refresh_token", "client_credentials"]
    assert token.access_token == "token3"


def test_create_token_provider_disabled_without_url():
    assert create_token_provider(token_url=None, client_id="cid", client_secret="s") is None


def test_create_token_provider_requires_credentials():
    assert create_token_provider(token_url="http://issuer/token", client_id="cid") is None


def test_create_token_provider():
    provider = create_token_provider(
        token_url="http://issuer/token", client_id="cid", client_secret="secret"
    )
    assert isinstance(provider, OidcClientCredentialsProvider)


@pytest.mark.asyncio
async def test_static_token_provider_never_expires():
    token = await StaticTokenProvider("service-token").get_token()

    assert token.is_valid()
    assert token.headers() == {"X-Auth-Token": "service-token"}
