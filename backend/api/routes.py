"""HTTP routes for service status, login and session state."""

import logging
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from core.config import AppSettings
from services.loan_lifecycle_store import LoanLifecycleStore
from services.session_service import INVALID_CREDENTIALS_MESSAGE, SessionService


logger = logging.getLogger(__name__)


class LoginRequest(BaseModel):
    """Request payload for email/password login."""

    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class SelectUserRequest(BaseModel):
    """Request payload for the user switcher; ``None`` clears the selection."""

    user_id: Optional[str] = Field(default=None)


def build_router(settings: AppSettings, store: LoanLifecycleStore, session: SessionService) -> APIRouter:
    """Build status and session routes with injected dependencies."""
    router = APIRouter()

    def _public(user: Any) -> Optional[Dict[str, Any]]:
        return user.to_public().to_payload() if user is not None else None

    @router.get("/", summary="Home")
    def read_root() -> Dict[str, Any]:
        """Landing view: service banner plus who is logged in."""
        return {
            "message": "{0} is running".format(settings.app_name),
            "user": _public(session.current_user),
            "loading": store.loading,
        }

    @router.get("/health", summary="Health check")
    def health_check() -> Dict[str, str]:
        """Return service health status for probes and monitors."""
        return {"status": "ok"}

    @router.get("/settings", summary="Settings snapshot")
    def get_settings_snapshot() -> Dict[str, Union[str, bool, int, float]]:
        """Expose non-sensitive settings useful for local verification."""
        return {
            "app_name": settings.app_name,
            "debug": settings.debug,
            "host": settings.host,
            "port": settings.port,
            "store_latency_sec": settings.store_latency_sec,
            "store_serialize_mutations": settings.store_serialize_mutations,
            "assistant_enabled": bool(settings.assistant_enabled and settings.assistant_api_key),
        }

    @router.get("/login", summary="Login view")
    def login_view() -> Dict[str, Any]:
        """Target of the role-gate redirect for anonymous callers."""
        return {"message": "Log in with your email and password.", "user": _public(session.current_user)}

    @router.post("/login", summary="Log in")
    async def login(payload: LoginRequest) -> Dict[str, Any]:
        """Authenticate against the store's users."""
        user = await session.login(email=payload.email, password=payload.password)
        if user is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_CREDENTIALS_MESSAGE)
        return {"user": _public(user)}

    @router.post("/logout", summary="Log out")
    def logout() -> Dict[str, str]:
        session.logout()
        return {"status": "logged_out"}

    @router.get("/session", summary="Current session")
    def get_session() -> Dict[str, Any]:
        return {"user": _public(session.current_user)}

    @router.get("/session/selected-user", summary="Selected user")
    def get_selected_user() -> Dict[str, Any]:
        """Return the switcher selection and the users it can choose from."""
        return {
            "user": _public(session.selected_user),
            "available_users": [_public(user) for user in store.users],
        }

    @router.put("/session/selected-user", summary="Select user")
    def put_selected_user(payload: SelectUserRequest) -> Dict[str, Any]:
        if payload.user_id is None:
            session.select_user(None)
            return {"user": _public(session.selected_user)}
        user = store.get_user(payload.user_id)
        if user is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
        session.select_user(user)
        return {"user": _public(user)}

    return router
