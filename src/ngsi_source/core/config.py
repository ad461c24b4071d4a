# ngsi_source/core/config.py
"""
Central configuration for the NGSI source runtime.

Environment variables override defaults. Per-activation source settings
(server, tenant, filters...) are preferences, not settings: see
``ngsi_source.core.preferences``.
"""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-driven settings with sensible defaults."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    host: str = "0.0.0.0"
    port: int = 8000

    # Initial preference values (glob patterns)
    preferences_paths: list[str] = Field(
        default_factory=lambda: ["config/preferences.yaml"]
    )

    # Standalone wiring: endpoints considered connected at startup
    connected_outputs: list[str] = Field(
        default_factory=lambda: ["entityOutput", "ngsimetadata"]
    )
    connected_inputs: list[str] = Field(default_factory=list)

    request_timeout: float = Field(default=30.0, description="NGSI request timeout (s)")

    # Initial snapshot pagination
    page_size: int = Field(default=100, ge=1)
    max_page: int = Field(
        default=100,
        ge=0,
        description="Last page index requested; entities past it are dropped",
    )

    # Subscription lifecycle
    renew_interval_seconds: float = Field(default=2 * 60 * 60)
    subscription_ttl_seconds: float = Field(default=3 * 60 * 60)

    # OIDC client credentials, used when `use_user_fiware_token` is enabled
    oidc_token_url: str = Field(default="", description="Token endpoint (empty to disable)")
    oidc_client_id: str = Field(default="")
    oidc_client_secret: str = Field(default="")
    oidc_client_scope: str = Field(default="")


settings = Settings()
