"""Top-level API router assembling status, session and dashboard routes."""

import logging

from fastapi import APIRouter
from fastapi.responses import RedirectResponse

from api.access import HOME_PATH
from api.dashboard_routes import build_dashboard_router
from api.routes import build_router as build_session_router
from core.config import AppSettings
from services.assistant_service import AnalystAssistantService
from services.loan_lifecycle_store import LoanLifecycleStore
from services.session_service import SessionService


logger = logging.getLogger(__name__)


def build_router(
    settings: AppSettings,
    store: LoanLifecycleStore,
    session: SessionService,
    assistant: AnalystAssistantService,
) -> APIRouter:
    """Build the application router.

    The catch-all route is registered last so that every unknown GET path
    lands on the home view.
    """
    router = APIRouter()
    router.include_router(build_session_router(settings, store, session))
    router.include_router(build_dashboard_router(store, session, assistant))

    @router.get("/{path:path}", include_in_schema=False)
    def redirect_unknown_path(path: str) -> RedirectResponse:
        logger.info("Unknown path redirected path=/%s", path)
        return RedirectResponse(url=HOME_PATH, status_code=303)

    return router
