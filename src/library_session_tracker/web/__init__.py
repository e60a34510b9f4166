"""
Web dashboard module for Library Session Tracker.

PURPOSE: FastAPI-based front-desk UI with htmx for dynamic updates.
AI CONTEXT: The only user interface. Holds the process's single
in-memory SessionStore on app.state.

FEATURES:
- Time-in / time-out with live elapsed timers over a websocket
- Session log with filters, inline edit and delete
- Student leaderboard as table, bar chart or pie
- CSV, PNG, PDF, JPEG and SVG downloads
- Library assistant chat

USAGE:
    # Via CLI
    library-tracker dashboard

    # Programmatically
    from library_session_tracker.web import create_app
    app = create_app()
"""

from .app import create_app, run_dashboard

__all__ = ["create_app", "run_dashboard"]
