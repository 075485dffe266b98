"""HTTP routing surface."""

from .access import RouteRedirect, require_roles, route_redirect_handler
from .router import build_router

__all__ = ["RouteRedirect", "build_router", "require_roles", "route_redirect_handler"]
