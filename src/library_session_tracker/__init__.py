"""
Library Session Tracker.

PURPOSE: Track student visits to the library and analyze the visit history.
AI CONTEXT: In-memory session store plus analytics, chart geometry and exports.

PACKAGE STRUCTURE:
- durations.py: Duration arithmetic and display formatting
- models.py: Data models (ActiveSession, CompletedSession, StudentTotal, PieBucket)
- errors.py: Error taxonomy for store, assistant and export failures
- session_store.py: Owner of active/completed collections and their transitions
- statistics.py: Per-student aggregation and pie-chart buckets
- queries.py: Filtering and multi-key sorting
- geometry.py: Pie arcs, bar layout and axis ticks
- exporters.py: CSV, table descriptors, PNG and PDF rendering
- ticker.py: Cancellable elapsed-time recomputation
- assistant.py: Pass-through to the text-generation service
- preferences.py: Persisted light/dark theme flag
- session_service.py: ServiceResult wrapper used by the web layer
- presenters.py: View models for the dashboard
- web/: FastAPI + htmx dashboard

QUICK START:
    # Launch dashboard
    python -m library_session_tracker dashboard --port 8000

    # Programmatic use
    from library_session_tracker.session_store import SessionStore
    store = SessionStore()
    active = store.time_in("Alice", 100)
    store.time_out(active.id)
"""

from library_session_tracker.__version__ import (
    __author__,
    __copyright__,
    __description__,
    __license__,
    __title__,
    __url__,
    __version__,
    __version_date__,
)

__all__ = [
    "__version__",
    "__version_date__",
    "__title__",
    "__description__",
    "__url__",
    "__author__",
    "__license__",
    "__copyright__",
]
