"""UI-level role gating for dashboard routes.

Gated views answer with redirects rather than 401/403 bodies: anonymous
callers are sent to the login view and callers with the wrong role to home.
"""

import logging
from typing import Callable, Iterable

from fastapi import Request
from fastapi.responses import RedirectResponse

from models.enums import Role
from models.users import UserModel
from services.session_service import SessionService


logger = logging.getLogger(__name__)

HOME_PATH = "/"
LOGIN_PATH = "/login"


class RouteRedirect(Exception):
    """Raised by route guards to send the caller to another view."""

    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location


def require_roles(session: SessionService, roles: Iterable[Role]) -> Callable[[], UserModel]:
    """Build a dependency that returns the logged-in user if their role is allowed."""
    allowed = frozenset(roles)

    def _guard() -> UserModel:
        user = session.current_user
        if user is None:
            raise RouteRedirect(LOGIN_PATH)
        if user.role not in allowed:
            logger.info("Role gate redirected user_id=%s role=%s", user.id, user.role.value)
            raise RouteRedirect(HOME_PATH)
        return user

    return _guard


async def route_redirect_handler(request: Request, exc: RouteRedirect) -> RedirectResponse:
    """Turn a guard redirect into a 303 response."""
    return RedirectResponse(url=exc.location, status_code=303)
