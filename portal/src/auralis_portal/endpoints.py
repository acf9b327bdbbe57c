"""Resolve the base URL of the backend API.

The base is recomputed on every call from an explicit ``ResolverConfig`` and
an optional page location, in this order:

1. the configured base URL (``AURALIS_PUBLIC_API_BASE_URL``);
2. the page origin, unless it points at a loopback host;
3. ``DEFAULT_LOCAL_API_BASE``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Final
from urllib.parse import urljoin, urlsplit

from pydantic import BaseModel, Field
from starlette.requests import Request

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_API_BASE: Final[str] = "http://localhost:8080"
LOCAL_HOSTNAMES: Final[frozenset[str]] = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "[::1]"})


class ResolverConfig(BaseModel):
    configured_base: str | None = Field(default=None)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ResolverConfig:
        env = os.environ if environ is None else environ
        return cls(configured_base=env.get("AURALIS_PUBLIC_API_BASE_URL"))


@dataclass(frozen=True)
class PageLocation:
    origin: str
    hostname: str


LocationProvider = Callable[[], PageLocation | None]


def _bracket_hostname(hostname: str) -> str:
    # urlsplit() drops the brackets around IPv6 literals.
    host = hostname.strip().lower()
    if ":" in host and not host.startswith("["):
        return f"[{host}]"
    return host


def location_from_url(url: str | None) -> LocationProvider:
    """Provider for a fixed page URL; an empty URL means there is no page."""

    def _provider() -> PageLocation | None:
        if not url:
            return None
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            return None
        return PageLocation(
            origin=f"{parts.scheme}://{parts.netloc}",
            hostname=_bracket_hostname(parts.hostname or ""),
        )

    return _provider


def location_from_request(request: Request) -> LocationProvider:
    def _provider() -> PageLocation | None:
        url = request.url
        return PageLocation(
            origin=f"{url.scheme}://{url.netloc}",
            hostname=_bracket_hostname(url.hostname or ""),
        )

    return _provider


def normalize_base(value: str | None) -> str:
    if not value:
        return ""
    trimmed = value.strip()
    if not trimmed:
        return ""
    if trimmed == "/":
        return "/"
    return trimmed.rstrip("/")


def _resolve_page_origin(location: LocationProvider | None) -> str:
    if location is None:
        return ""
    try:
        page = location()
    except Exception as exc:
        logger.debug("Page origin detection failed: %s", exc)
        return ""
    if page is None or not page.origin:
        return ""
    hostname = _bracket_hostname(page.hostname)
    if hostname and hostname not in LOCAL_HOSTNAMES:
        return page.origin.rstrip("/")
    return ""


def get_api_base_url(
    config: ResolverConfig | None = None, location: LocationProvider | None = None
) -> str:
    configured = normalize_base(config.configured_base if config is not None else None)
    if configured:
        return configured

    origin = _resolve_page_origin(location)
    if origin:
        return origin

    return DEFAULT_LOCAL_API_BASE


def _join(base: str, path: str) -> str:
    parts = urlsplit(base)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"Not an absolute base URL: {base!r}")
    return urljoin(base if base.endswith("/") else f"{base}/", path)


def build_api_url(
    path: str, config: ResolverConfig | None = None, location: LocationProvider | None = None
) -> str:
    base = get_api_base_url(config, location)
    if not base:
        return path
    try:
        return _join(base, path)
    except ValueError:
        if path.startswith("/"):
            return f"{base}{path}"
        return f"{base}/{path}"
