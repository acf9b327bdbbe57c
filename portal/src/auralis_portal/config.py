from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from auralis_portal.home import PortalPaths

DEFAULT_UPSTREAM_BASE_URL = "http://localhost:8080"


class NetworkConfig(BaseModel):
    bind_host: str = Field(default="127.0.0.1")
    port: int = Field(default=3000, ge=1, le=65535)


class UpstreamConfig(BaseModel):
    """Where the auth proxy forwards to.

    ``auth_api_base_url`` wins when set (even to an empty string), then
    ``public_api_base_url``, then the local development default.
    """

    auth_api_base_url: str | None = Field(default=None)
    public_api_base_url: str | None = Field(
        default=None,
        description="Publicly exposed API base; also the endpoint resolver's configured base.",
    )

    @property
    def base_url(self) -> str:
        if self.auth_api_base_url is not None:
            raw = self.auth_api_base_url
        elif self.public_api_base_url is not None:
            raw = self.public_api_base_url
        else:
            raw = DEFAULT_UPSTREAM_BASE_URL
        return raw.strip().rstrip("/")


class CookieConfig(BaseModel):
    secure: bool = Field(default=False, description="Mark auth cookies Secure.")


class GuardConfig(BaseModel):
    protected_prefixes: list[str] = Field(default_factory=lambda: ["/smart", "/admin"])


class LoggingConfig(BaseModel):
    max_size_mb: int = Field(
        default=10, ge=1, description="Max size of a log file in MB before rolling."
    )
    backup_count: int = Field(default=5, ge=1, description="Number of log archives to keep.")


class PortalConfig(BaseModel):
    version: str = Field(default="1")
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    cookies: CookieConfig = Field(default_factory=CookieConfig)
    guard: GuardConfig = Field(default_factory=GuardConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _read_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _env_flag(value: str | None) -> bool:
    return str(value or "").strip().lower() == "true"


def apply_env_overrides(config: PortalConfig, environ: Mapping[str, str]) -> PortalConfig:
    """Overlay AURALIS_* environment variables on top of file config."""

    upstream_update: dict[str, Any] = {}
    if "AURALIS_AUTH_API_BASE_URL" in environ:
        upstream_update["auth_api_base_url"] = environ["AURALIS_AUTH_API_BASE_URL"]
    if "AURALIS_PUBLIC_API_BASE_URL" in environ:
        upstream_update["public_api_base_url"] = environ["AURALIS_PUBLIC_API_BASE_URL"]

    secure = config.cookies.secure
    if _env_flag(environ.get("AURALIS_AUTH_COOKIE_SECURE")):
        secure = True
    if (environ.get("AURALIS_ENV") or "").strip().lower() == "production":
        secure = True

    network_update: dict[str, Any] = {}
    bind = (environ.get("AURALIS_BIND") or "").strip()
    if bind:
        network_update["bind_host"] = bind
    port = (environ.get("AURALIS_PORT") or "").strip()
    if port:
        network_update["port"] = int(port)

    merged = config.model_dump()
    merged["upstream"].update(upstream_update)
    merged["network"].update(network_update)
    merged["cookies"]["secure"] = secure
    return PortalConfig.model_validate(merged)


def load_portal_config(
    paths: PortalPaths, environ: Mapping[str, str] | None = None
) -> PortalConfig:
    """Load config from ${AURALIS_HOME}/config/portal.json plus env overrides.

    - If the file is missing: defaults.
    - Validation is performed by Pydantic.
    """

    env = os.environ if environ is None else environ

    config_path = paths.portal_config_path
    if config_path.exists():
        config = PortalConfig.model_validate(_read_json(config_path))
    else:
        config = PortalConfig()
    return apply_env_overrides(config, env)
