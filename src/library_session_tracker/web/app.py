"""
FastAPI application for the Library Session Tracker dashboard.

PURPOSE: Application factory and server runner.
AI CONTEXT: The factory owns the single in-memory SessionStore for the
process and hangs it, with the service and theme preferences, on app.state.
Routes reach them through dependency factories in routes.py.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from ..__version__ import __version__
from ..assistant import LibraryAssistant
from ..preferences import ThemePreferenceStore
from ..session_service import SessionService
from ..session_store import SessionStore
from .routes import router

__all__ = ["create_app", "run_dashboard"]

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """
    Log dashboard startup and shutdown.

    Business context: Sessions live in memory only, so the shutdown line
    marks the point where the day's unsaved log is gone. The count of
    open sessions is logged to make that visible.

    Args:
        app: The FastAPI application instance (provided by FastAPI).

    Yields:
        None. Control returns to FastAPI to handle requests.
    """
    logger.info("Library Session Tracker dashboard starting (v%s)", __version__)
    yield
    store: SessionStore = app.state.service.store
    logger.info(
        "Library Session Tracker dashboard shutting down "
        "(%d active, %d completed sessions discarded)",
        len(store.active_sessions),
        len(store.completed_sessions),
    )


def create_app(
    store: SessionStore | None = None,
    preferences: ThemePreferenceStore | None = None,
    assistant: LibraryAssistant | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI dashboard application.

    Factory function so tests can inject a store with a fixed clock,
    preferences backed by a MockFileSystem, and a fake assistant.

    Args:
        store: Session store. Default: a new, empty SessionStore.
        preferences: Theme preference store. Default: reads
            Config.get_preferences_dir().
        assistant: Assistant client. Default: LibraryAssistant().

    Returns:
        Configured FastAPI application with every dashboard route
        registered and OpenAPI docs at /docs.

    Example:
        >>> from fastapi.testclient import TestClient
        >>> client = TestClient(create_app())
        >>> client.get("/api/theme").json()
        {'theme': 'light'}
    """
    app = FastAPI(
        title="Library Session Tracker",
        description="Dashboard for tracking library visits, leaderboards and exports",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.service = SessionService(store=store, assistant=assistant)
    app.state.preferences = preferences or ThemePreferenceStore()

    app.include_router(router)
    return app


def run_dashboard(
    host: str = "127.0.0.1",
    port: int = 8000,
    reload: bool = False,
    log_level: str = "info",
) -> None:
    """
    Launch the dashboard server.

    Blocks until the server is stopped (Ctrl+C). Each process starts with
    an empty session log.

    Args:
        host: Interface to bind. '127.0.0.1' for the front-desk machine
            only, '0.0.0.0' to reach it from other machines.
        port: TCP port. Default 8000.
        reload: Auto-reload on code changes (development only; a reload
            also empties the store).
        log_level: Uvicorn logging verbosity.

    Raises:
        OSError: If the port is already in use.
    """
    uvicorn.run(
        "library_session_tracker.web.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
    )


if __name__ == "__main__":
    run_dashboard()
