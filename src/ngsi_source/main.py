# ngsi_source/main.py
"""
NGSI source application factory.

Runs the operator as a standalone service: an in-memory host stands in for
the mashup platform, and the FastAPI app serves as the notification proxy
the context broker pushes to.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI

from ngsi_source.api.notifications import router as notifications_router
from ngsi_source.api.operator import router as operator_router
from ngsi_source.contracts.host import ENTITY_OUTPUT, NORMALIZED_OUTPUT
from ngsi_source.core.auth import create_token_provider
from ngsi_source.core.config import Settings, settings as default_settings
from ngsi_source.core.coordinator import ClientFactory, NGSISourceCoordinator
from ngsi_source.core.host import MemoryPreferences, MemoryWiring
from ngsi_source.core.loader import load_preferences
from ngsi_source.core.logging import configure_logging
from ngsi_source.core.ngsi.client import make_client_factory
from ngsi_source.core.preferences import PREFERENCE_DEFAULTS
from ngsi_source.core.subscription.relay import NotificationRelay

logger = logging.getLogger(__name__)


def _initial_preferences(settings: Settings) -> dict[str, Any]:
    values = dict(PREFERENCE_DEFAULTS)
    values.update(load_preferences(settings.preferences_paths))
    return values


def _log_published(endpoint: str):
    def listener(data: Any) -> None:
        size = len(data) if isinstance(data, list) else 0
        logger.info("Published %d entities on '%s'", size, endpoint)

    return listener


@asynccontextmanager
async def lifespan(app: FastAPI):
    coordinator: NGSISourceCoordinator = app.state.coordinator
    coordinator.init()
    logger.info("NGSI source started (phase=%s)", coordinator.phase.value)

    yield

    await coordinator.shutdown()


def create_app(
    settings: Settings | None = None,
    *,
    preferences: dict[str, Any] | None = None,
    client_factory: ClientFactory | None = None,
) -> FastAPI:
    """Build and wire the NGSI source FastAPI application.

    Args:
        settings: Runtime settings, defaults to the environment-driven ones.
        preferences: Initial preference values. Loaded from the YAML files in
            ``settings.preferences_paths`` when omitted.
        client_factory: Builds the context broker client of each cycle.
    """
    settings = settings or default_settings
    configure_logging(settings.log_level)
    logger.info("Creating NGSI source application (env=%s)", settings.app_env)

    if preferences is None:
        preferences = _initial_preferences(settings)
    else:
        preferences = {**PREFERENCE_DEFAULTS, **preferences}

    if client_factory is None:
        token_provider = create_token_provider(
            token_url=settings.oidc_token_url or None,
            client_id=settings.oidc_client_id or None,
            client_secret=settings.oidc_client_secret or None,
            scope=settings.oidc_client_scope or None,
        )
        client_factory = make_client_factory(
            timeout=settings.request_timeout,
            token_provider=token_provider,
        )

    prefs = MemoryPreferences(preferences)
    wiring = MemoryWiring(
        connected_outputs=settings.connected_outputs,
        connected_inputs=settings.connected_inputs,
    )
    for endpoint in (ENTITY_OUTPUT, NORMALIZED_OUTPUT):
        wiring.add_listener(endpoint, _log_published(endpoint))

    relay = NotificationRelay()
    coordinator = NGSISourceCoordinator(
        prefs,
        wiring,
        client_factory=client_factory,
        relay=relay,
        page_size=settings.page_size,
        max_page=settings.max_page,
        renew_interval=settings.renew_interval_seconds,
        subscription_ttl=settings.subscription_ttl_seconds,
    )

    app = FastAPI(title="NGSI Source", lifespan=lifespan)
    app.state.settings = settings
    app.state.preferences = prefs
    app.state.wiring = wiring
    app.state.relay = relay
    app.state.coordinator = coordinator

    app.include_router(operator_router)
    app.include_router(notifications_router)

    return app
