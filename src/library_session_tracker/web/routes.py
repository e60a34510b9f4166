"""
FastAPI routes for the Library Session Tracker dashboard.

PURPOSE: Thin route handlers that delegate to the service and presenters.
AI CONTEXT: Routes should be simple - validation and mutation live in
SessionService, view state in presenters, file formats in exporters.

ROUTE STRUCTURE:
- / : Main dashboard page (full HTML)
- /partials/* : htmx partial updates
- /api/* : JSON endpoints (plus the plain-text /api/report)
- /export/*, /charts/* : File downloads (CSV, PNG, PDF, JPEG, SVG)
- /ws/elapsed : Live elapsed timers for signed-in students

HTMX CONVENTIONS:
- Mutating endpoints answer JSON and set "HX-Trigger: sessions-changed";
  panels listen for that event and reload themselves.
- Sort state is echoed back into the control forms with hx-swap-oob.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime
from html import escape
from typing import Annotated, Any, Literal
from urllib.parse import urlencode

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Request,
    WebSocket,
    WebSocketDisconnect,
)
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from pydantic import BaseModel, field_validator

from ..assistant import GREETING, SUGGESTED_QUESTIONS
from ..config import Config
from ..errors import ExportError
from ..exporters import (
    IMAGE_FORMATS,
    export_filename,
    leaderboard_csv,
    leaderboard_table,
    render_table_pdf,
    render_table_png,
    session_log_csv,
    session_log_table,
)
from ..geometry import render_bar_svg, render_pie_svg
from ..preferences import ThemePreferenceStore
from ..presenters import (
    ActiveListViewModel,
    ChartPresenter,
    DashboardPresenter,
    LeaderboardViewModel,
    SessionLogViewModel,
)
from ..queries import TOTAL_SORT_KEYS, SessionFilter, SortConfig, SortDirection
from ..session_service import ServiceResult, SessionService
from ..ticker import ElapsedTicker

__all__ = [
    "router",
    "get_service",
    "get_preferences",
    "get_dashboard_presenter",
    "get_chart_presenter",
    "TimeInRequest",
    "SessionForm",
    "QuestionRequest",
]

logger = logging.getLogger(__name__)

router = APIRouter()

SESSIONS_CHANGED_EVENT = "sessions-changed"
ACTIVE_SORT_KEYS = ("name", "time_in")

PieMetric = Literal["level", "name"]
ChartView = Literal["pie", "chart"]

_MEDIA_TYPES = {
    "csv": "text/csv; charset=utf-8",
    "png": "image/png",
    "jpeg": "image/jpeg",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
}

# =============================================================================
# CSS Styles
# =============================================================================

_DASHBOARD_CSS = """
body.theme-light {
    --bg: #f3f4f6;
    --surface: #ffffff;
    --border: #e5e7eb;
    --text: #111827;
    --text-muted: #6b7280;
}
body.theme-dark {
    --bg: #111827;
    --surface: #1f2937;
    --border: #374151;
    --text: #e5e7eb;
    --text-muted: #9ca3af;
}
:root {
    --primary: #4f46e5;
    --success: #16a34a;
    --warning: #d97706;
    --danger: #dc2626;
}
* { box-sizing: border-box; margin: 0; padding: 0; }
body {
    font-family: system-ui, -apple-system, sans-serif;
    background: var(--bg);
    color: var(--text);
    line-height: 1.5;
    padding: 1rem;
}
.container { max-width: 1400px; margin: 0 auto; }
header {
    display: flex;
    justify-content: space-between;
    align-items: center;
    margin-bottom: 1.5rem;
    padding-bottom: 1rem;
    border-bottom: 1px solid var(--border);
}
h1 { font-size: 1.5rem; font-weight: 600; }
.grid {
    display: grid;
    grid-template-columns: repeat(auto-fit, minmax(380px, 1fr));
    gap: 1rem;
    margin-bottom: 1rem;
}
.panel {
    background: var(--surface);
    border: 1px solid var(--border);
    border-radius: 0.5rem;
    padding: 1rem;
    margin-bottom: 1rem;
}
.panel h2 { font-size: 1.1rem; font-weight: 600; margin-bottom: 0.75rem; }
form.inline { display: flex; flex-wrap: wrap; gap: 0.5rem; margin-bottom: 0.75rem; }
input, select, textarea, button {
    font: inherit;
    padding: 0.35rem 0.6rem;
    border: 1px solid var(--border);
    border-radius: 0.375rem;
    background: var(--surface);
    color: var(--text);
}
button { cursor: pointer; }
button.primary { background: var(--primary); color: #fff; border-color: var(--primary); }
button.danger { color: var(--danger); }
table { width: 100%; border-collapse: collapse; }
th, td { text-align: left; padding: 0.5rem; border-bottom: 1px solid var(--border); }
th { color: var(--text-muted); font-weight: 500; font-size: 0.875rem; }
th button { border: none; background: none; color: inherit; padding: 0; }
tr.long-session td { background: rgba(217, 119, 6, 0.12); }
.muted { color: var(--text-muted); font-size: 0.875rem; }
.empty { text-align: center; color: var(--text-muted); padding: 1.5rem; }
.elapsed { font-family: ui-monospace, monospace; font-weight: 600; }
.bar-track { background: var(--border); border-radius: 0.25rem; height: 0.5rem; }
.bar-fill { background: var(--primary); border-radius: 0.25rem; height: 0.5rem; }
.downloads a { margin-right: 0.75rem; font-size: 0.875rem; color: var(--primary); }
.chart-container { overflow-x: auto; background: #fff; border-radius: 0.375rem; }
#notice {
    background: #fef2f2;
    color: var(--danger);
    border: 1px solid #fecaca;
    border-radius: 0.375rem;
    padding: 0.5rem 0.75rem;
    margin-bottom: 1rem;
}
#chat-log { max-height: 320px; overflow-y: auto; margin-bottom: 0.75rem; }
.chat-bubble { padding: 0.5rem 0.75rem; border-radius: 0.5rem; margin-bottom: 0.5rem; white-space: pre-wrap; }
.chat-bubble.user { background: var(--primary); color: #fff; margin-left: 20%; }
.chat-bubble.assistant { background: var(--bg); margin-right: 20%; }
footer {
    text-align: center;
    color: var(--text-muted);
    font-size: 0.75rem;
    margin-top: 1rem;
}
"""

_DASHBOARD_JS = """
function suggestLevel(input) {
    var name = input.value.trim();
    if (!name) { return; }
    fetch('/api/suggest-level?' + new URLSearchParams({name: name}))
        .then(function (response) { return response.json(); })
        .then(function (body) {
            if (body.level !== null) { input.form.elements.level.value = String(body.level); }
        });
}
document.body.addEventListener('htmx:responseError', function (evt) {
    var notice = document.getElementById('notice');
    var text = 'Request failed.';
    try {
        var body = JSON.parse(evt.detail.xhr.responseText);
        if (typeof body.message === 'string') { text = body.message; }
        else if (typeof body.detail === 'string') { text = body.detail; }
    } catch (e) {}
    notice.textContent = text;
    notice.hidden = false;
});
document.body.addEventListener('htmx:afterRequest', function (evt) {
    if (evt.detail.successful && evt.detail.requestConfig.verb !== 'get') {
        document.getElementById('notice').hidden = true;
    }
});
(function () {
    var scheme = location.protocol === 'https:' ? 'wss://' : 'ws://';
    var socket = new WebSocket(scheme + location.host + '/ws/elapsed');
    socket.onmessage = function (evt) {
        var elapsed = JSON.parse(evt.data);
        Object.keys(elapsed).forEach(function (id) {
            var cell = document.getElementById('elapsed-' + id);
            if (cell) { cell.textContent = elapsed[id]; }
        });
    };
})();
"""


# =============================================================================
# Request bodies
# =============================================================================


def _as_local(value: datetime) -> datetime:
    # datetime-local inputs arrive without an offset and mean local wall time.
    return value if value.tzinfo is not None else value.astimezone()


class TimeInRequest(BaseModel):
    """Body of POST /api/sessions/time-in."""

    student_name: str
    level: int = Config.DEFAULT_LEVEL


class SessionForm(BaseModel):
    """
    Body of the "Add Session" and "Edit Session" forms.

    Naive timestamps are read as local time so they compare cleanly with
    sessions recorded by the store clock.
    """

    student_name: str
    level: int = Config.DEFAULT_LEVEL
    time_in: datetime
    time_out: datetime
    notes: str | None = None

    @field_validator("time_in", "time_out")
    @classmethod
    def _localize(cls, value: datetime) -> datetime:
        return _as_local(value)


class QuestionRequest(BaseModel):
    """Body of POST /api/assistant."""

    question: str


# =============================================================================
# Dependency Injection Factories
# =============================================================================


def get_service(request: Request) -> SessionService:
    """
    Return the SessionService owned by the running application.

    The service (and through it the in-memory SessionStore) is created
    once by create_app() and stored on app.state, so every request sees
    the same sessions.

    Args:
        request: Incoming request, used to reach app.state.

    Returns:
        The application's SessionService.
    """
    service: SessionService = request.app.state.service
    return service


def get_preferences(request: Request) -> ThemePreferenceStore:
    """Return the application's theme preference store."""
    preferences: ThemePreferenceStore = request.app.state.preferences
    return preferences


def get_dashboard_presenter(
    service: Annotated[SessionService, Depends(get_service)],
) -> DashboardPresenter:
    """
    Create a DashboardPresenter over the application's store.

    Presenters are cheap and stateless, so a fresh one per request keeps
    route handlers free of shared mutable state.

    Args:
        service: Injected SessionService.

    Returns:
        DashboardPresenter reading the service's store and statistics engine.
    """
    return DashboardPresenter(service.store, service.stats_engine)


def get_chart_presenter(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
) -> ChartPresenter:
    """Create a ChartPresenter on top of the request's DashboardPresenter."""
    return ChartPresenter(presenter)


# =============================================================================
# Query parameter parsing
# =============================================================================


@dataclass(frozen=True)
class LeaderboardQuery:
    """Search, sort and limit shared by the leaderboard table, charts and exports."""

    query: str
    sort: SortConfig
    limit: int | None

    def params(self) -> dict[str, str]:
        """Query-string form, for building download links."""
        return {
            "q": self.query,
            "sort": self.sort.key,
            "direction": self.sort.direction,
            "limit": "all" if self.limit is None else str(self.limit),
        }


def _parse_limit(value: str) -> int | None:
    if value.strip().lower() in ("", "all"):
        return None
    try:
        limit = int(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid limit: {value}") from None
    if limit < 1:
        raise HTTPException(status_code=400, detail=f"Invalid limit: {value}")
    return limit


def _parse_optional_int(name: str, value: str) -> int | None:
    if not value.strip():
        return None
    try:
        return int(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}") from None


def _parse_optional_date(name: str, value: str) -> date | None:
    if not value.strip():
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name}: {value}") from None


def leaderboard_query(
    q: str = "",
    sort: str = "total_seconds",
    direction: SortDirection = "descending",
    limit: str = str(Config.DEFAULT_DISPLAY_LIMIT),
) -> LeaderboardQuery:
    """
    Parse leaderboard query parameters.

    Args:
        q: Name search text.
        sort: One of TOTAL_SORT_KEYS.
        direction: "ascending" or "descending".
        limit: Row count, or "all".

    Raises:
        HTTPException: 400 for an unknown sort key or a bad limit.
    """
    if sort not in TOTAL_SORT_KEYS:
        raise HTTPException(status_code=400, detail=f"Invalid sort key: {sort}")
    return LeaderboardQuery(query=q.strip(), sort=SortConfig(sort, direction), limit=_parse_limit(limit))


def active_sort(sort: str = "time_in", direction: SortDirection = "ascending") -> SortConfig:
    """Parse the active list sort; only name and time_in are sortable there."""
    if sort not in ACTIVE_SORT_KEYS:
        raise HTTPException(status_code=400, detail=f"Invalid sort key: {sort}")
    return SortConfig(sort, direction)


def log_filter(q: str = "", level: str = "", start: str = "", end: str = "") -> SessionFilter:
    """
    Parse session log filters.

    Empty strings mean "not set", which is what an untouched htmx form
    submits for the level select and the date inputs.
    """
    return SessionFilter(
        query=q.strip(),
        level=_parse_optional_int("level", level),
        start_date=_parse_optional_date("start", start),
        end_date=_parse_optional_date("end", end),
    )


# =============================================================================
# Response helpers
# =============================================================================


def _result_response(result: ServiceResult, changed: bool = False) -> JSONResponse:
    headers = {"HX-Trigger": SESSIONS_CHANGED_EVENT} if changed and result.success else None
    return JSONResponse(content=result.to_dict(), status_code=result.status, headers=headers)


def _download(content: bytes | str, ext: str, filename: str) -> Response:
    return Response(
        content=content,
        media_type=_MEDIA_TYPES[ext],
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _html(content: str) -> HTMLResponse:
    return HTMLResponse(content=content, media_type="text/html; charset=utf-8")


def _render_export(build: Callable[[], bytes | str], ext: str, filename: str) -> Response:
    """Run an exporter, mapping empty data to 404 and missing matplotlib to 503."""
    try:
        content = build()
    except ExportError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ImportError:
        logger.warning("matplotlib is not installed; cannot export %s", filename)
        raise HTTPException(
            status_code=503, detail=f"Install matplotlib to export {ext.upper()} files."
        ) from None
    return _download(content, ext, filename)


# =============================================================================
# Page and partials
# =============================================================================


@router.get("/", response_class=HTMLResponse)
async def dashboard_page(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    charts: Annotated[ChartPresenter, Depends(get_chart_presenter)],
    service: Annotated[SessionService, Depends(get_service)],
    preferences: Annotated[ThemePreferenceStore, Depends(get_preferences)],
) -> HTMLResponse:
    """
    Render the main dashboard page.

    Serves the front-desk page: time-in form, the "Currently in Library"
    list with live timers, the session log with filters, the student
    leaderboard and the assistant chat. Panels reload themselves through
    htmx when a mutation fires the sessions-changed event.

    Business context: This is the only screen library staff use. The body
    carries the saved light/dark theme class.

    Returns:
        HTMLResponse containing the complete dashboard page.
    """
    board_query = leaderboard_query()
    html = _render_dashboard_html(
        theme=preferences.theme,
        known_names=service.store.known_names(),
        active_html=_render_active_panel(presenter.get_active_list()),
        log_html=_render_log_panel(presenter.get_session_log()),
        summary_html=_render_summary_panel(
            presenter.get_leaderboard(board_query.query, board_query.sort, board_query.limit),
            charts,
            board_query,
            view="table",
            metric="level",
        ),
        assistant_configured=service.assistant.configured,
    )
    return _html(html)


@router.get("/partials/active", response_class=HTMLResponse)
async def active_partial(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    service: Annotated[SessionService, Depends(get_service)],
    sort: Annotated[SortConfig, Depends(active_sort)],
    q: str = "",
) -> HTMLResponse:
    """
    Render the "Currently in Library" panel for htmx refresh.

    Also swaps in the known-names datalist and the sort state out of band,
    so the time-in autocomplete and the search form stay current.
    """
    active = presenter.get_active_list(q.strip(), sort)
    return _html(
        _render_active_panel(active)
        + _known_names_datalist(service.store.known_names(), oob=True)
        + _sort_state_inputs("active", active.sort)
    )


@router.get("/partials/log", response_class=HTMLResponse)
async def log_partial(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    session_filter: Annotated[SessionFilter, Depends(log_filter)],
) -> HTMLResponse:
    """Render the session log panel with the submitted filters applied."""
    return _html(_render_log_panel(presenter.get_session_log(session_filter)))


@router.get("/partials/summary", response_class=HTMLResponse)
async def summary_partial(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    charts: Annotated[ChartPresenter, Depends(get_chart_presenter)],
    board_query: Annotated[LeaderboardQuery, Depends(leaderboard_query)],
    view: Literal["table", "chart", "pie"] = "table",
    metric: PieMetric = "level",
) -> HTMLResponse:
    """
    Render the student leaderboard panel.

    Args:
        view: "table", "chart" (bar chart) or "pie".
        metric: Pie grouping, "level" or "name".
    """
    board = presenter.get_leaderboard(board_query.query, board_query.sort, board_query.limit)
    return _html(
        _render_summary_panel(board, charts, board_query, view, metric)
        + _sort_state_inputs("summary", board.sort)
    )


@router.post("/partials/assistant", response_class=HTMLResponse)
async def assistant_partial(
    body: QuestionRequest,
    service: Annotated[SessionService, Depends(get_service)],
) -> HTMLResponse:
    """
    Ask the assistant and return the two chat bubbles to append.

    Always answers 200 so htmx swaps the bubbles in; failures show up as
    the assistant's reply text.
    """
    result = await run_in_threadpool(service.ask_assistant, body.question)
    reply = result.data["answer"] if result.success and result.data else result.message
    return _html(
        f'<div class="chat-bubble user">{escape(body.question)}</div>'
        f'<div class="chat-bubble assistant">{escape(reply)}</div>'
    )


# =============================================================================
# Session JSON API
# =============================================================================


@router.get("/api/sessions")
async def api_sessions(
    service: Annotated[SessionService, Depends(get_service)],
) -> dict[str, Any]:
    """
    Get both session collections.

    Returns:
        {"active_sessions": [...], "completed_sessions": [...],
        "known_names": [...]}; completed sessions in stored order.
    """
    result = service.get_snapshot()
    return result.data or {}


@router.post("/api/sessions/time-in")
async def api_time_in(
    body: TimeInRequest,
    service: Annotated[SessionService, Depends(get_service)],
) -> JSONResponse:
    """
    Sign a student in.

    Returns:
        200 with the new active session, or 400 when the name is empty
        or the student is already signed in.
    """
    return _result_response(service.time_in(body.student_name, body.level), changed=True)


@router.post("/api/sessions/{session_id}/time-out")
async def api_time_out(
    session_id: str,
    service: Annotated[SessionService, Depends(get_service)],
) -> JSONResponse:
    """Sign a student out; 404 when the session is not active."""
    return _result_response(service.time_out(session_id), changed=True)


@router.post("/api/completed")
async def api_add_completed(
    body: SessionForm,
    service: Annotated[SessionService, Depends(get_service)],
) -> JSONResponse:
    """
    Backfill a completed session.

    Returns:
        200 with the stored session; 400 for an empty name or a time
        range where Time In is not before Time Out.
    """
    result = service.add_session(body.student_name, body.level, body.time_in, body.time_out, body.notes)
    return _result_response(result, changed=True)


@router.put("/api/completed/{session_id}")
async def api_update_completed(
    session_id: str,
    body: SessionForm,
    service: Annotated[SessionService, Depends(get_service)],
) -> JSONResponse:
    """Edit a completed session in place; 400 for invalid input, 404 for an unknown id."""
    result = service.update_session(
        session_id, body.student_name, body.level, body.time_in, body.time_out, body.notes
    )
    return _result_response(result, changed=True)


@router.delete("/api/completed/{session_id}")
async def api_delete_completed(
    session_id: str,
    service: Annotated[SessionService, Depends(get_service)],
) -> JSONResponse:
    """Delete a completed session; 404 for an unknown id."""
    return _result_response(service.delete_session(session_id), changed=True)


@router.get("/api/log")
async def api_log(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    session_filter: Annotated[SessionFilter, Depends(log_filter)],
) -> dict[str, Any]:
    """
    Get the filtered session log.

    Query parameters: q (name substring), level, start and end
    (YYYY-MM-DD, inclusive).

    Returns:
        Matching sessions in stored order with their total duration.
    """
    sessions = presenter.filtered_sessions(session_filter)
    log = presenter.get_session_log(session_filter)
    return {
        "sessions": [s.to_dict() for s in sessions],
        "total_duration": log.total_duration.to_dict(),
        "total_display": log.total_display,
        "filters_active": log.filters_active,
    }


@router.get("/api/summary")
async def api_summary(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    board_query: Annotated[LeaderboardQuery, Depends(leaderboard_query)],
) -> dict[str, Any]:
    """
    Get the student leaderboard.

    Query parameters: q, sort (name, level, total_seconds,
    average_seconds, session_count), direction, limit (number or "all").

    Returns:
        {"students": [StudentTotal dicts], "total_students": int,
        "total_sessions": int}. The counts ignore search and limit.
    """
    board = presenter.get_leaderboard(board_query.query, board_query.sort, board_query.limit)
    totals = presenter.leaderboard_totals(board_query.query, board_query.sort, board_query.limit)
    return {
        "students": [t.to_dict() for t in totals],
        "total_students": board.total_students,
        "total_sessions": board.total_sessions,
    }


@router.get("/api/pie")
async def api_pie(
    charts: Annotated[ChartPresenter, Depends(get_chart_presenter)],
    metric: PieMetric = "level",
) -> dict[str, Any]:
    """Get pie buckets and computed slices for a metric ("level" or "name")."""
    layout = charts.pie_layout(metric)
    return {
        "metric": metric,
        "title": layout.title,
        "total": layout.total,
        "formatted_total": layout.formatted_total,
        "message": layout.message,
        "buckets": [b.to_dict() for b in charts.dashboard.pie_buckets(metric)],
        "slices": [
            {
                "label": s.label,
                "value": s.value,
                "color": s.color,
                "percentage": s.percentage,
                "path": s.path,
            }
            for s in layout.slices
        ],
    }


@router.get("/api/suggest-level")
async def api_suggest_level(
    name: str,
    service: Annotated[SessionService, Depends(get_service)],
) -> dict[str, Any]:
    """Level last used by a returning student, or null when the name is new."""
    return {"name": name, "level": service.suggest_level(name)}


@router.get("/api/report", response_class=PlainTextResponse)
async def api_report(
    service: Annotated[SessionService, Depends(get_service)],
) -> PlainTextResponse:
    """
    Get the plain-text summary report.

    Returns:
        Visit counts, total and average time, the level mix and the five
        busiest students.
    """
    return PlainTextResponse(service.get_summary_report())


# =============================================================================
# Exports
# =============================================================================


@router.get("/export/log.csv")
async def export_log_csv(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    session_filter: Annotated[SessionFilter, Depends(log_filter)],
) -> Response:
    """Download the filtered session log as CSV; 404 when it is empty."""
    sessions = presenter.filtered_sessions(session_filter)
    return _render_export(
        lambda: session_log_csv(sessions), "csv", export_filename("library_session_log", "csv")
    )


@router.get("/export/log.png")
async def export_log_png(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    preferences: Annotated[ThemePreferenceStore, Depends(get_preferences)],
    session_filter: Annotated[SessionFilter, Depends(log_filter)],
) -> Response:
    """Download the filtered session log as a PNG table in the current theme."""
    table = session_log_table(presenter.filtered_sessions(session_filter))
    return _render_export(
        lambda: render_table_png(table, preferences.theme),
        "png",
        export_filename("library_session_log", "png", dated=False),
    )


@router.get("/export/log.pdf")
async def export_log_pdf(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    session_filter: Annotated[SessionFilter, Depends(log_filter)],
) -> Response:
    """
    Download the filtered session log as a paginated PDF.

    Business context: The printable copy handed to administrators;
    always rendered in the light theme.
    """
    table = session_log_table(presenter.filtered_sessions(session_filter))
    return _render_export(
        lambda: render_table_pdf(table), "pdf", export_filename("library_session_log", "pdf")
    )


@router.get("/export/summary.csv")
async def export_summary_csv(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    board_query: Annotated[LeaderboardQuery, Depends(leaderboard_query)],
) -> Response:
    """Download the leaderboard rows currently shown as CSV."""
    totals = presenter.leaderboard_totals(board_query.query, board_query.sort, board_query.limit)
    return _render_export(
        lambda: leaderboard_csv(totals), "csv", export_filename("student_leaderboard", "csv")
    )


@router.get("/export/summary.png")
async def export_summary_png(
    presenter: Annotated[DashboardPresenter, Depends(get_dashboard_presenter)],
    preferences: Annotated[ThemePreferenceStore, Depends(get_preferences)],
    board_query: Annotated[LeaderboardQuery, Depends(leaderboard_query)],
) -> Response:
    """Download the leaderboard rows currently shown as a PNG table."""
    table = leaderboard_table(
        presenter.leaderboard_totals(board_query.query, board_query.sort, board_query.limit)
    )
    return _render_export(
        lambda: render_table_png(table, preferences.theme),
        "png",
        export_filename("student_leaderboard", "png", dated=False),
    )


@router.get("/export/chart-data.csv")
async def export_chart_data(
    charts: Annotated[ChartPresenter, Depends(get_chart_presenter)],
    board_query: Annotated[LeaderboardQuery, Depends(leaderboard_query)],
    view: ChartView = "pie",
    metric: PieMetric = "level",
) -> Response:
    """
    Download the numbers behind the chart on screen.

    Args:
        view: "pie" for the distribution pie, "chart" for the bar chart.
        metric: Pie grouping when view is "pie".
    """
    stem = charts.chart_filename_stem(view, metric, data=True)
    return _render_export(
        lambda: charts.chart_data_csv(
            view, metric, board_query.query, board_query.sort, board_query.limit
        ),
        "csv",
        export_filename(stem, "csv", dated=False),
    )


@router.get("/charts/summary.{fmt}")
async def summary_chart(
    fmt: str,
    charts: Annotated[ChartPresenter, Depends(get_chart_presenter)],
    preferences: Annotated[ThemePreferenceStore, Depends(get_preferences)],
    board_query: Annotated[LeaderboardQuery, Depends(leaderboard_query)],
    view: ChartView = "pie",
    metric: PieMetric = "level",
) -> Response:
    """
    Download the leaderboard chart as PNG, JPEG or SVG.

    PNG and JPEG are drawn by matplotlib in the current theme; when
    matplotlib is missing a placeholder SVG is returned instead, as the
    dashboard keeps working without it.

    Args:
        fmt: "png", "jpeg" (or "jpg") or "svg".
        view: "pie" or "chart" (bar chart).
        metric: Pie grouping when view is "pie".

    Returns:
        Image bytes as an attachment; 404 when there is no data or the
        format is unknown.
    """
    ext = "jpeg" if fmt.lower() == "jpg" else fmt.lower()
    if ext not in IMAGE_FORMATS:
        raise HTTPException(status_code=404, detail=f"Unsupported image format: {fmt}")

    filename = export_filename(charts.chart_filename_stem(view, metric), ext, dated=False)
    try:
        if view == "pie":
            content = charts.render_pie(metric, ext, preferences.theme)
        else:
            content = charts.render_bar(
                board_query.query, board_query.sort, board_query.limit, ext, preferences.theme
            )
    except ExportError as e:
        raise HTTPException(status_code=404, detail=str(e)) from None
    except ImportError:
        return Response(content=_placeholder_chart_svg("Leaderboard"), media_type="image/svg+xml")
    return _download(content, ext, filename)


# =============================================================================
# Assistant and theme
# =============================================================================


@router.get("/api/assistant")
async def api_assistant_info(
    service: Annotated[SessionService, Depends(get_service)],
) -> dict[str, Any]:
    """Greeting, suggested questions and whether an API key is configured."""
    return {
        "greeting": GREETING,
        "suggested_questions": list(SUGGESTED_QUESTIONS),
        "configured": service.assistant.configured,
    }


@router.post("/api/assistant")
async def api_assistant(
    body: QuestionRequest,
    service: Annotated[SessionService, Depends(get_service)],
) -> JSONResponse:
    """
    Ask the library assistant a question about the current sessions.

    Returns:
        200 with {"data": {"answer": ...}}; 400 for a blank question;
        503 with a friendly message when the assistant is unavailable.
        The blocking model call runs in the threadpool so the event loop
        keeps serving sign-ins and the elapsed timers meanwhile.
    """
    result = await run_in_threadpool(service.ask_assistant, body.question)
    return _result_response(result)


@router.get("/api/theme")
async def api_theme(
    preferences: Annotated[ThemePreferenceStore, Depends(get_preferences)],
) -> dict[str, str]:
    """Current dashboard theme."""
    return {"theme": preferences.theme}


@router.post("/api/theme/toggle")
async def api_toggle_theme(
    preferences: Annotated[ThemePreferenceStore, Depends(get_preferences)],
) -> JSONResponse:
    """Switch between light and dark, persist the choice, and ask htmx to reload the page."""
    theme = preferences.toggle()
    return JSONResponse(content={"theme": theme}, headers={"HX-Refresh": "true"})


# =============================================================================
# Live elapsed timers
# =============================================================================


@router.websocket("/ws/elapsed")
async def elapsed_socket(websocket: WebSocket) -> None:
    """
    Push {session_id: "HH:MM:SS"} for every signed-in student each second.

    One ElapsedTicker per connection; it is cancelled when the client
    goes away. Incoming messages are ignored.
    """
    service: SessionService = websocket.app.state.service
    ticker = ElapsedTicker(service.store)
    await websocket.accept()
    ticker.start(websocket.send_json)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("Elapsed timer client disconnected")
    finally:
        ticker.cancel()


# =============================================================================
# HTML rendering
# =============================================================================


def _placeholder_chart_svg(title: str) -> bytes:
    """
    Generate a placeholder SVG when matplotlib is unavailable.

    Args:
        title: Chart title shown in the placeholder.

    Returns:
        UTF-8 encoded SVG with the text "{title} Chart (install matplotlib)".

    Example:
        >>> b"Leaderboard Chart" in _placeholder_chart_svg("Leaderboard")
        True
    """
    svg = f"""<svg xmlns="http://www.w3.org/2000/svg" width="400" height="200">
        <rect width="100%" height="100%" fill="#f1f5f9"/>
        <text x="50%" y="50%" text-anchor="middle" fill="#64748b" font-size="16">
            {escape(title)} Chart (install matplotlib)
        </text>
    </svg>"""
    return svg.encode("utf-8")


def _level_options(selected: int | None, include_all: bool = False) -> str:
    options = '<option value="">All levels</option>' if include_all else ""
    for level in Config.LEVELS:
        attr = " selected" if level == selected else ""
        options += f'<option value="{level}"{attr}>Level {level}</option>'
    return options


def _sort_header(label: str, key: str, sort: SortConfig, url: str, target: str, include: str) -> str:
    arrow = ""
    if sort.key == key:
        arrow = " &#9650;" if sort.direction == "ascending" else " &#9660;"
    toggled = sort.toggled(key)
    vals = escape(json.dumps({"sort": toggled.key, "direction": toggled.direction}))
    return (
        f'<th><button hx-get="{url}" hx-target="{target}" hx-include="{include}" '
        f"hx-vals='{vals}'>{escape(label)}{arrow}</button></th>"
    )


def _sort_state_inputs(prefix: str, sort: SortConfig) -> str:
    # Out-of-band swap keeps the control form's hidden sort fields in step.
    return (
        f'<input type="hidden" id="{prefix}-sort" name="sort" value="{sort.key}" hx-swap-oob="true">'
        f'<input type="hidden" id="{prefix}-direction" name="direction" '
        f'value="{sort.direction}" hx-swap-oob="true">'
    )


def _render_active_panel(active: ActiveListViewModel) -> str:
    """
    Render the "Currently in Library" list.

    Each row carries an elapsed cell with id "elapsed-{session_id}" that
    the websocket script updates every second, and a Time Out button.
    """
    header = (
        "<tr>"
        + _sort_header("Student", "name", active.sort, "/partials/active", "#active-panel", "#active-controls")
        + "<th>Level</th>"
        + _sort_header("Time In", "time_in", active.sort, "/partials/active", "#active-panel", "#active-controls")
        + "<th>Elapsed</th><th></th></tr>"
    )
    rows = ""
    for row in active.rows:
        rows += f"""<tr>
            <td>{escape(row.student_name)}</td>
            <td>{row.level}</td>
            <td class="muted">{escape(row.time_in_display)}</td>
            <td class="elapsed" id="elapsed-{row.session_id}">{row.elapsed_display}</td>
            <td><button class="primary" hx-post="/api/sessions/{row.session_id}/time-out"
                        hx-swap="none">Time Out</button></td>
        </tr>"""
    if active.empty_message:
        rows = f'<tr><td colspan="5" class="empty">{escape(active.empty_message)}</td></tr>'

    return f"""<h2>{escape(active.title)}</h2>
    <table><thead>{header}</thead><tbody>{rows}</tbody></table>"""


def _known_names_datalist(known_names: list[str], oob: bool = False) -> str:
    names = "".join(f'<option value="{escape(name)}"></option>' for name in known_names)
    swap = ' hx-swap-oob="true"' if oob else ""
    return f'<datalist id="known-names"{swap}>{names}</datalist>'


def _render_log_panel(log: SessionLogViewModel) -> str:
    """
    Render the session log table.

    Long sessions get the "long-session" row class. Every row has an
    inline edit form (PUT /api/completed/{id}) and a delete button that
    asks for confirmation.
    """
    rows = ""
    for row in log.rows:
        in_date, in_time = row.time_in_display
        out_date, out_time = row.time_out_display
        row_class = ' class="long-session"' if row.is_long_session else ""
        rows += f"""<tr{row_class}>
            <td>{escape(row.student_name)}</td>
            <td>{row.level}</td>
            <td>{in_date}<br><span class="muted">{in_time}</span></td>
            <td>{out_date}<br><span class="muted">{out_time}</span></td>
            <td>{row.duration_display}</td>
            <td>{escape(row.notes_display)}</td>
            <td>
                <details><summary>Edit</summary>
                    <form class="inline" hx-put="/api/completed/{row.session_id}"
                          hx-ext="json-enc" hx-swap="none">
                        <input name="student_name" value="{escape(row.student_name)}" required>
                        <select name="level">{_level_options(row.level)}</select>
                        <input type="datetime-local" step="1" name="time_in"
                               value="{row.time_in.strftime('%Y-%m-%dT%H:%M:%S')}">
                        <input type="datetime-local" step="1" name="time_out"
                               value="{row.time_out.strftime('%Y-%m-%dT%H:%M:%S')}">
                        <input name="notes" value="{escape(row.notes or '')}" placeholder="Notes">
                        <button class="primary" type="submit">Save</button>
                    </form>
                </details>
                <button class="danger" hx-delete="/api/completed/{row.session_id}" hx-swap="none"
                        hx-confirm="Delete this session?">Delete</button>
            </td>
        </tr>"""
    if log.empty_message:
        rows = f'<tr><td colspan="7" class="empty">{escape(log.empty_message)}</td></tr>'

    return f"""<table>
        <thead><tr>
            <th>Student</th><th>Level</th><th>Time In</th><th>Time Out</th>
            <th>Duration</th><th>Notes</th><th></th>
        </tr></thead>
        <tbody>{rows}</tbody>
    </table>
    <p class="muted" style="text-align: right; margin-top: 0.5rem;">{log.total_display}</p>"""


def _render_summary_panel(
    board: LeaderboardViewModel,
    charts: ChartPresenter,
    board_query: LeaderboardQuery,
    view: str,
    metric: str,
) -> str:
    """
    Render the leaderboard in its selected view with matching download links.

    The table view links to CSV/PNG exports; the chart views embed the
    SVG from geometry.py and link to image and chart-data downloads.
    """
    params = board_query.params()
    if view == "table":
        body = _render_leaderboard_table(board)
        query = urlencode(params)
        links = (
            f'<a href="/export/summary.csv?{query}">CSV</a>'
            f'<a href="/export/summary.png?{query}">PNG</a>'
        )
    else:
        chart_view = "pie" if view == "pie" else "chart"
        if chart_view == "pie":
            svg = render_pie_svg(charts.pie_layout(metric))
        elif board.rows:
            svg = render_bar_svg(charts.bar_layout(board_query.query, board_query.sort, board_query.limit))
        else:
            svg = ""
        body = (
            f'<div class="chart-container">{svg}</div>'
            if svg
            else f'<p class="empty">{escape(board.empty_message or "")}</p>'
        )
        query = urlencode({**params, "view": chart_view, "metric": metric})
        links = "".join(
            f'<a href="/charts/summary.{fmt}?{query}">{fmt.upper()}</a>' for fmt in IMAGE_FORMATS
        )
        links += f'<a href="/export/chart-data.csv?{query}">Data CSV</a>'

    return f"""<p class="muted">{board.total_students} students &bull; {board.total_sessions} sessions</p>
    {body}
    <div class="downloads">{links}</div>"""


def _render_leaderboard_table(board: LeaderboardViewModel) -> str:
    def header(label: str, key: str) -> str:
        return _sort_header(label, key, board.sort, "/partials/summary", "#summary-panel", "#summary-controls")

    rows = ""
    for row in board.rows:
        rows += f"""<tr>
            <td>{row.rank}</td>
            <td>{escape(row.student_name)}</td>
            <td>{row.level}</td>
            <td>{row.session_count}</td>
            <td>{row.average_display}</td>
            <td>{row.total_display}
                <div class="bar-track"><div class="bar-fill" style="width: {row.bar_percent:.1f}%"></div></div>
            </td>
        </tr>"""
    if board.empty_message:
        rows = f'<tr><td colspan="6" class="empty">{escape(board.empty_message)}</td></tr>'

    return f"""<table>
        <thead><tr>
            <th>#</th>{header("Student", "name")}{header("Level", "level")}
            {header("Sessions", "session_count")}{header("Average", "average_seconds")}
            {header("Total Time", "total_seconds")}
        </tr></thead>
        <tbody>{rows}</tbody>
    </table>"""


def _render_dashboard_html(
    theme: str,
    known_names: list[str],
    active_html: str,
    log_html: str,
    summary_html: str,
    assistant_configured: bool,
) -> str:
    """
    Render the complete dashboard HTML page.

    Args:
        theme: "light" or "dark"; becomes the body class.
        known_names: Autocomplete entries for the name inputs.
        active_html: Initial "Currently in Library" panel.
        log_html: Initial session log panel.
        summary_html: Initial leaderboard panel.
        assistant_configured: Whether to show the API key hint.

    Returns:
        Complete HTML5 document string.
    """
    limit_options = "".join(
        f'<option value="{"all" if limit is None else limit}"'
        f'{" selected" if limit == Config.DEFAULT_DISPLAY_LIMIT else ""}>'
        f'{"All" if limit is None else f"Top {limit}"}</option>'
        for limit in Config.DISPLAY_LIMITS
    )
    suggestions = "".join(
        f"""<button hx-post="/partials/assistant" hx-ext="json-enc" hx-target="#chat-log"
                    hx-swap="beforeend" hx-vals='{escape(json.dumps({"question": q}))}'>{escape(q)}</button>"""
        for q in SUGGESTED_QUESTIONS
    )
    key_hint = (
        ""
        if assistant_configured
        else '<p class="muted">Set ANTHROPIC_API_KEY to enable the assistant.</p>'
    )
    refresh = f"{SESSIONS_CHANGED_EVENT} from:body"
    toggle_label = "Dark mode" if theme == "light" else "Light mode"

    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Library Session Tracker</title>
    <script src="https://unpkg.com/htmx.org@1.9.10"></script>
    <script src="https://unpkg.com/htmx.org@1.9.10/dist/ext/json-enc.js"></script>
    <style>
        {_DASHBOARD_CSS}
    </style>
</head>
<body class="theme-{theme}">
    <div class="container">
        <header>
            <h1>&#128218; Library Session Tracker</h1>
            <button hx-post="/api/theme/toggle" hx-swap="none">{toggle_label}</button>
        </header>

        <div id="notice" hidden></div>

        <div class="grid">
            <div class="panel">
                <h2>Time In</h2>
                <form class="inline" hx-post="/api/sessions/time-in" hx-ext="json-enc" hx-swap="none"
                      hx-on::after-request="if (event.detail.successful) this.reset()">
                    <input name="student_name" list="known-names" placeholder="Student name or ID" required
                           onchange="suggestLevel(this)">
                    <select name="level">{_level_options(Config.DEFAULT_LEVEL)}</select>
                    <button class="primary" type="submit">Time In</button>
                </form>
                {_known_names_datalist(known_names)}

                <h2>Add Session</h2>
                <form class="inline" hx-post="/api/completed" hx-ext="json-enc" hx-swap="none"
                      hx-on::after-request="if (event.detail.successful) this.reset()">
                    <input name="student_name" list="known-names" placeholder="Student name or ID" required>
                    <select name="level">{_level_options(Config.DEFAULT_LEVEL)}</select>
                    <input type="datetime-local" step="1" name="time_in" required>
                    <input type="datetime-local" step="1" name="time_out" required>
                    <input name="notes" placeholder="Notes (optional)">
                    <button class="primary" type="submit">Add</button>
                </form>
            </div>

            <div class="panel">
                <form id="active-controls" class="inline" hx-get="/partials/active" hx-target="#active-panel"
                      hx-trigger="input changed delay:300ms">
                    <input name="q" placeholder="Search signed-in students">
                    <input type="hidden" id="active-sort" name="sort" value="time_in">
                    <input type="hidden" id="active-direction" name="direction" value="ascending">
                </form>
                <div id="active-panel" hx-get="/partials/active" hx-include="#active-controls"
                     hx-trigger="{refresh}">
                    {active_html}
                </div>
            </div>
        </div>

        <div class="panel">
            <h2>Session Log</h2>
            <form id="log-controls" class="inline" hx-get="/partials/log" hx-target="#log-panel"
                  hx-trigger="input changed delay:300ms, change">
                <input name="q" placeholder="Search by name">
                <select name="level">{_level_options(None, include_all=True)}</select>
                <input type="date" name="start">
                <input type="date" name="end">
                <button type="reset" hx-get="/partials/log" hx-target="#log-panel">Clear</button>
            </form>
            <div class="downloads">
                <a href="/export/log.csv"
                   onclick="this.href='/export/log.csv?'+new URLSearchParams(new FormData(document.getElementById('log-controls')))">CSV</a>
                <a href="/export/log.png"
                   onclick="this.href='/export/log.png?'+new URLSearchParams(new FormData(document.getElementById('log-controls')))">PNG</a>
                <a href="/export/log.pdf"
                   onclick="this.href='/export/log.pdf?'+new URLSearchParams(new FormData(document.getElementById('log-controls')))">PDF</a>
            </div>
            <div id="log-panel" hx-get="/partials/log" hx-include="#log-controls"
                 hx-trigger="{refresh}">
                {log_html}
            </div>
        </div>

        <div class="panel">
            <h2>Student Leaderboard</h2>
            <form id="summary-controls" class="inline" hx-get="/partials/summary" hx-target="#summary-panel"
                  hx-trigger="input changed delay:300ms, change">
                <input name="q" placeholder="Search students">
                <select name="limit">{limit_options}</select>
                <select name="view">
                    <option value="table">Table</option>
                    <option value="chart">Bar chart</option>
                    <option value="pie">Pie chart</option>
                </select>
                <select name="metric">
                    <option value="level">Pie by level</option>
                    <option value="name">Pie by student</option>
                </select>
                <input type="hidden" id="summary-sort" name="sort" value="total_seconds">
                <input type="hidden" id="summary-direction" name="direction" value="descending">
            </form>
            <div id="summary-panel" hx-get="/partials/summary" hx-include="#summary-controls"
                 hx-trigger="{refresh}">
                {summary_html}
            </div>
        </div>

        <div class="panel">
            <h2>Library Assistant</h2>
            {key_hint}
            <div id="chat-log"><div class="chat-bubble assistant">{escape(GREETING)}</div></div>
            <div class="inline">{suggestions}</div>
            <form class="inline" hx-post="/partials/assistant" hx-ext="json-enc" hx-target="#chat-log"
                  hx-swap="beforeend" hx-on::after-request="if (event.detail.successful) this.reset()">
                <input name="question" placeholder="Ask about today's sessions" style="flex: 1" required>
                <button class="primary" type="submit">Ask</button>
            </form>
        </div>

        <footer>
            Library Session Tracker &bull; Powered by FastAPI + htmx
        </footer>
    </div>
    <script>
        {_DASHBOARD_JS}
    </script>
</body>
</html>"""
