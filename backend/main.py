"""Application entrypoint for the LoanHub FastAPI backend."""

import sys
from pathlib import Path
from typing import Any, Optional

# ---------------------------------------------------------------------------
# Ensure backend packages are importable when run as a script
# ---------------------------------------------------------------------------
_BACKEND_DIR = Path(__file__).resolve().parent
if str(_BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(_BACKEND_DIR))

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from api.access import RouteRedirect, route_redirect_handler
from api.router import build_router
from common import MockDataCatalog
from core import get_logger, load_settings, setup_logging
from core.config import AppSettings
from repositories import JsonFileKeyValueStorage, KeyValueStorage, MemoryKeyValueStorage
from services import AnalystAssistantService, LoanLifecycleStore, SessionService, StoreEvent


logger = get_logger(__name__)


def _log_store_event(event: StoreEvent) -> None:
    logger.info("Store event type=%s record_id=%s", event.type.value, event.record_id)


def create_app(
    settings: Optional[AppSettings] = None,
    durable_storage: Optional[KeyValueStorage] = None,
    session_storage: Optional[KeyValueStorage] = None,
    assistant_client: Optional[Any] = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Storage backends and the assistant client can be injected; by default the
    logged-in user is persisted to ``session.storage_path`` and the assistant
    is configured from settings.
    """
    settings = settings or load_settings()
    setup_logging(settings.log_level)
    app = FastAPI(title=settings.app_name, debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    store = LoanLifecycleStore.from_settings(settings)
    store.subscribe(_log_store_event)
    session = SessionService(
        store=store,
        durable_storage=durable_storage or JsonFileKeyValueStorage(settings.session_storage_path),
        session_storage=session_storage or MemoryKeyValueStorage(),
        current_user_key=settings.session_current_user_key,
        selected_user_key=settings.session_selected_user_key,
        latency_sec=settings.store_latency_sec,
    )
    if assistant_client is not None:
        assistant = AnalystAssistantService(store=store, client=assistant_client)
    else:
        assistant = AnalystAssistantService.from_settings(settings, store)

    app.state.settings = settings
    app.state.store = store
    app.state.session = session
    app.state.assistant = assistant

    app.add_exception_handler(RouteRedirect, route_redirect_handler)
    app.include_router(build_router(settings, store, session, assistant))

    @app.on_event("startup")
    async def _load_seed_data() -> None:
        """Seed the store from the mock data catalog on application startup."""
        try:
            await app.state.store.load_initial_data(MockDataCatalog(settings.store_seed_path))
        except Exception:
            logger.exception("Failed to load seed data during startup.")
            raise

    logger.info("Application initialized: %s", settings.app_name)
    return app


app = create_app()


def run() -> None:
    """Start the ASGI server for local development."""
    settings = load_settings()
    try:
        uvicorn.run("main:app", host=settings.host, port=settings.port, reload=settings.debug)
    except Exception:
        logger.exception("Failed to start uvicorn server.")
        raise


if __name__ == "__main__":
    run()
