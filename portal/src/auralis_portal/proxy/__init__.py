from __future__ import annotations

from auralis_portal.proxy.relay import UPSTREAM_UNREACHABLE, ProxyError
from auralis_portal.proxy.routes import router

__all__ = ["UPSTREAM_UNREACHABLE", "ProxyError", "router"]
