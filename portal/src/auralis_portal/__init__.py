from auralis_portal.config import PortalConfig, load_portal_config
from auralis_portal.endpoints import ResolverConfig, build_api_url, get_api_base_url
from auralis_portal.home import PortalPaths, ensure_portal_layout, resolve_portal_home
from auralis_portal.session import ClientContext, SessionTokenStore

__version__ = "0.1.0"

__all__ = [
    "ClientContext",
    "PortalConfig",
    "PortalPaths",
    "ResolverConfig",
    "SessionTokenStore",
    "__version__",
    "build_api_url",
    "ensure_portal_layout",
    "get_api_base_url",
    "load_portal_config",
    "resolve_portal_home",
]
