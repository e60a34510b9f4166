"""
Presenters for the Library Session Tracker dashboard.

PURPOSE: Testable business logic layer between the session store and the UI.
AI CONTEXT: Pure data transformation for the dashboard panels. Image
rendering is delegated to exporters.py (matplotlib, lazy-imported).

DESIGN PRINCIPLES:
1. Presenters receive data, return view models (dataclasses)
2. No dependencies on FastAPI or HTML
3. Fully unit-testable with a SessionStore and a fixed clock
4. Each view model backs one dashboard panel

PANELS:
- Currently in Library: ActiveListViewModel
- Session Log: SessionLogViewModel
- Student Leaderboard: LeaderboardViewModel (table, bar chart, pie)

USAGE:
    presenter = DashboardPresenter(store, statistics)
    log = presenter.get_session_log(SessionFilter(level=200))
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

from .config import Config
from .durations import Duration, format_duration, format_hhmmss, format_hms_long
from .exporters import (
    chart_data_csv,
    format_date,
    format_time,
    render_bar_chart,
    render_pie_chart,
)
from .geometry import BarLayout, PieLayout, layout_bars, layout_pie
from .models import ActiveSession, CompletedSession, PieBucket, StudentTotal
from .queries import (
    SessionFilter,
    SortConfig,
    apply_limit,
    filter_by_name,
    filter_sessions,
    sort_sessions,
    sort_totals,
)

if TYPE_CHECKING:
    from .session_store import SessionStore
    from .statistics import StatisticsEngine

__all__ = [
    "PIE_METRICS",
    "ActiveSessionViewModel",
    "ActiveListViewModel",
    "SessionLogRowViewModel",
    "SessionLogViewModel",
    "LeaderboardRowViewModel",
    "LeaderboardViewModel",
    "DashboardPresenter",
    "ChartPresenter",
]

PIE_METRICS = ("level", "name")

NO_ACTIVE_MESSAGE = "No students are currently signed in."
NO_MATCH_MESSAGE = "No students match your search."
NO_COMPLETED_MESSAGE = "No completed sessions yet."
NO_FILTER_MATCH_MESSAGE = "No sessions match your search criteria."
NO_LEADERBOARD_MESSAGE = (
    "No completed sessions yet. A leaderboard will be generated once students start signing out."
)


@dataclass
class ActiveSessionViewModel:
    """View model for one row of the "Currently in Library" list."""

    session_id: str
    student_name: str
    level: int
    time_in: datetime
    elapsed_seconds: int

    @property
    def elapsed_display(self) -> str:
        """Live timer text, HH:MM:SS."""
        return format_hhmmss(self.elapsed_seconds)

    @property
    def time_in_display(self) -> str:
        """
        Sign-in time for the row subtitle.

        Example:
            >>> row.time_in_display
            'Signed In: 9:05:00 AM'
        """
        return f"Signed In: {format_time(self.time_in)}"


@dataclass
class ActiveListViewModel:
    """Everything the active-sessions panel needs."""

    rows: list[ActiveSessionViewModel]
    total_count: int
    query: str
    sort: SortConfig

    @property
    def title(self) -> str:
        """Panel heading with the number of students signed in."""
        return f"Currently in Library ({self.total_count})"

    @property
    def empty_message(self) -> str | None:
        """Placeholder text, or None when rows are shown."""
        if self.total_count == 0:
            return NO_ACTIVE_MESSAGE
        if not self.rows:
            return NO_MATCH_MESSAGE
        return None


@dataclass
class SessionLogRowViewModel:
    """View model for one completed session in the log."""

    session_id: str
    student_name: str
    level: int
    time_in: datetime
    time_out: datetime
    duration: Duration
    notes: str | None

    @property
    def is_long_session(self) -> bool:
        """
        True when the visit lasted Config.LONG_SESSION_HOURS or more.

        Business context: Long visits are highlighted so staff can spot
        forgotten sign-outs or students who may need a check-in.
        """
        return self.duration.hours >= Config.LONG_SESSION_HOURS

    @property
    def duration_display(self) -> str:
        """Duration as "1h 5m 3s" (hours omitted when zero)."""
        return format_hms_long(self.duration)

    @property
    def time_in_display(self) -> tuple[str, str]:
        """(date, time) strings for the Time In cell."""
        return format_date(self.time_in), format_time(self.time_in)

    @property
    def time_out_display(self) -> tuple[str, str]:
        """(date, time) strings for the Time Out cell."""
        return format_date(self.time_out), format_time(self.time_out)

    @property
    def notes_display(self) -> str:
        """Notes, or the "No notes" placeholder."""
        return self.notes or "No notes"


@dataclass
class SessionLogViewModel:
    """Session log panel: filtered rows, the total, and the filter state."""

    rows: list[SessionLogRowViewModel]
    total_duration: Duration
    total_count: int
    session_filter: SessionFilter = field(default_factory=SessionFilter)

    @property
    def filters_active(self) -> bool:
        """True when any log filter is set."""
        return self.session_filter.is_active

    @property
    def total_display(self) -> str:
        """Total of the visible rows, e.g. "Total: 3h 5m 0s"."""
        return f"Total: {format_hms_long(self.total_duration)}"

    @property
    def empty_message(self) -> str | None:
        """Placeholder text, or None when rows are shown."""
        if self.rows:
            return None
        if self.total_count and self.filters_active:
            return NO_FILTER_MATCH_MESSAGE
        return NO_COMPLETED_MESSAGE


@dataclass
class LeaderboardRowViewModel:
    """View model for one leaderboard row with its relative time bar."""

    rank: int
    student_name: str
    level: int
    total_seconds: int
    session_count: int
    average_seconds: float
    bar_percent: float

    @property
    def total_display(self) -> str:
        """Total time, compact format."""
        return format_duration(self.total_seconds)

    @property
    def average_display(self) -> str:
        """Average visit, compact format."""
        return format_duration(self.average_seconds)


@dataclass
class LeaderboardViewModel:
    """Student leaderboard panel state."""

    rows: list[LeaderboardRowViewModel]
    total_students: int
    total_sessions: int
    query: str
    sort: SortConfig
    limit: int | None

    @property
    def empty_message(self) -> str | None:
        """Placeholder text, or None when rows are shown."""
        if self.total_students == 0:
            return NO_LEADERBOARD_MESSAGE
        if not self.rows:
            return NO_MATCH_MESSAGE
        return None


class DashboardPresenter:
    """
    Presenter for the main dashboard panels.

    Reads store snapshots on every call, so view models always reflect
    the latest state.
    """

    def __init__(self, store: SessionStore, statistics: StatisticsEngine) -> None:
        """
        Initialize presenter with data dependencies.

        Args:
            store: Session store to read snapshots from.
            statistics: Engine for aggregation.

        Example:
            >>> presenter = DashboardPresenter(SessionStore(), StatisticsEngine())
            >>> presenter.get_active_list().empty_message
            'No students are currently signed in.'
        """
        self.store = store
        self.statistics = statistics

    def get_active_list(
        self,
        query: str = "",
        sort: SortConfig | None = None,
        now: datetime | None = None,
    ) -> ActiveListViewModel:
        """
        Build the "Currently in Library" panel.

        Defaults to earliest sign-in first. Elapsed times are computed
        against now (the store clock by default).

        Args:
            query: Name search text.
            sort: Sort state; key "name" or "time_in".
            now: Reference time for elapsed durations.

        Returns:
            ActiveListViewModel.
        """
        sort = sort or SortConfig("time_in", "ascending")
        moment = now or self.store.now()
        sessions = self.store.active_sessions
        matched: list[ActiveSession] = sort_sessions(
            filter_by_name(sessions, query), sort.key, sort.direction
        )
        rows = [
            ActiveSessionViewModel(
                session_id=s.id,
                student_name=s.student_name,
                level=s.level,
                time_in=s.time_in,
                elapsed_seconds=s.elapsed_seconds(moment),
            )
            for s in matched
        ]
        return ActiveListViewModel(rows=rows, total_count=len(sessions), query=query, sort=sort)

    def filtered_sessions(self, session_filter: SessionFilter | None = None) -> list[CompletedSession]:
        """Completed sessions passing the filter, in stored order."""
        return filter_sessions(self.store.completed_sessions, session_filter or SessionFilter())

    def get_session_log(self, session_filter: SessionFilter | None = None) -> SessionLogViewModel:
        """
        Build the session log panel.

        Rows keep the store's order; the log has no sortable columns.
        The total covers the filtered rows only.
        """
        session_filter = session_filter or SessionFilter()
        sessions = self.filtered_sessions(session_filter)
        rows = [
            SessionLogRowViewModel(
                session_id=s.id,
                student_name=s.student_name,
                level=s.level,
                time_in=s.time_in,
                time_out=s.time_out,
                duration=s.duration,
                notes=s.notes,
            )
            for s in sessions
        ]
        return SessionLogViewModel(
            rows=rows,
            total_duration=self.statistics.total_duration(sessions),
            total_count=len(self.store.completed_sessions),
            session_filter=session_filter,
        )

    def leaderboard_totals(
        self,
        query: str = "",
        sort: SortConfig | None = None,
        limit: int | None = None,
    ) -> list[StudentTotal]:
        """
        Student totals after search, sort and display limit.

        This is exactly what the table, the bar chart and their exports show.
        """
        sort = sort or SortConfig("total_seconds", "descending")
        totals = self.statistics.aggregate_by_student(self.store.completed_sessions)
        ranked = sort_totals(filter_by_name(totals, query), sort.key, sort.direction)
        return apply_limit(ranked, limit)

    def get_leaderboard(
        self,
        query: str = "",
        sort: SortConfig | None = None,
        limit: int | None = Config.DEFAULT_DISPLAY_LIMIT,
    ) -> LeaderboardViewModel:
        """
        Build the leaderboard panel.

        Each row's bar_percent is its total relative to the largest total
        among the visible rows.

        Args:
            query: Name search text.
            sort: Sort state. Default: total_seconds descending.
            limit: Rows to show; None for all.

        Returns:
            LeaderboardViewModel.

        Example:
            >>> board = presenter.get_leaderboard(limit=5)
            >>> board.rows[0].bar_percent
            100.0
        """
        sort = sort or SortConfig("total_seconds", "descending")
        all_totals = self.statistics.aggregate_by_student(self.store.completed_sessions)
        visible = self.leaderboard_totals(query, sort, limit)
        max_total = self.statistics.max_total_seconds(visible)
        rows = [
            LeaderboardRowViewModel(
                rank=index + 1,
                student_name=t.student_name,
                level=t.level,
                total_seconds=t.total_seconds,
                session_count=t.session_count,
                average_seconds=t.average_seconds,
                bar_percent=t.total_seconds / max_total * 100,
            )
            for index, t in enumerate(visible)
        ]
        return LeaderboardViewModel(
            rows=rows,
            total_students=len(all_totals),
            total_sessions=self.statistics.total_session_count(all_totals),
            query=query,
            sort=sort,
            limit=limit,
        )

    def pie_buckets(self, metric: str = "level") -> list[PieBucket]:
        """
        Buckets for the leaderboard pie.

        Args:
            metric: "level" (student entries per level) or "name"
                (time per student, top 9 plus "Other Students").

        Raises:
            ValueError: If metric is unknown.
        """
        completed = self.store.completed_sessions
        if metric == "level":
            return self.statistics.buckets_by_level(self.statistics.aggregate_by_student(completed))
        if metric == "name":
            return self.statistics.buckets_by_student(self.statistics.totals_by_name(completed))
        raise ValueError(f"Unknown pie metric: {metric}")


class ChartPresenter:
    """
    Presenter for chart layouts, chart images and chart data exports.

    Layouts come from geometry.py; images are rendered by exporters.py
    with matplotlib.
    """

    def __init__(self, dashboard: DashboardPresenter) -> None:
        """
        Args:
            dashboard: Source of leaderboard totals and pie buckets.
        """
        self.dashboard = dashboard

    def pie_layout(self, metric: str = "level") -> PieLayout:
        """
        Lay out the leaderboard pie for a metric.

        The level pie counts entries; the name pie shows time, so its
        values, total and percentages read as durations.
        """
        buckets = self.dashboard.pie_buckets(metric)
        if metric == "level":
            return layout_pie(
                buckets,
                title="Student Distribution by Level",
                total_label="Total Student Entries",
            )
        return layout_pie(
            buckets,
            title="Time Distribution by Student",
            total_label="Total Time",
            value_formatter=format_duration,
        )

    def bar_layout(
        self,
        query: str = "",
        sort: SortConfig | None = None,
        limit: int | None = Config.DEFAULT_DISPLAY_LIMIT,
    ) -> BarLayout:
        """Lay out the bar chart of the visible leaderboard rows."""
        return layout_bars(self.dashboard.leaderboard_totals(query, sort, limit))

    def render_pie(self, metric: str = "level", fmt: str = "png", theme: str = "light") -> bytes:
        """
        Render the pie chart as image bytes.

        Raises:
            ExportError: If there is nothing to chart.
            ImportError: If matplotlib is not installed (png/jpeg).
        """
        return render_pie_chart(self.pie_layout(metric), fmt, theme)

    def render_bar(
        self,
        query: str = "",
        sort: SortConfig | None = None,
        limit: int | None = Config.DEFAULT_DISPLAY_LIMIT,
        fmt: str = "png",
        theme: str = "light",
    ) -> bytes:
        """
        Render the bar chart as image bytes.

        Raises:
            ExportError: If there are no rows.
            ImportError: If matplotlib is not installed (png/jpeg).
        """
        return render_bar_chart(self.bar_layout(query, sort, limit), fmt, theme)

    def chart_data_csv(
        self,
        view: str = "pie",
        metric: str = "level",
        query: str = "",
        sort: SortConfig | None = None,
        limit: int | None = Config.DEFAULT_DISPLAY_LIMIT,
    ) -> str:
        """
        CSV of the data behind the chart currently shown.

        Args:
            view: "pie" or "chart" (bar chart).
            metric: Pie metric when view is "pie".
            query: Leaderboard search text (bar chart).
            sort: Leaderboard sort (bar chart).
            limit: Leaderboard limit (bar chart).

        Raises:
            ExportError: If there is no data.
        """
        if view == "pie":
            points = [(b.label, b.value) for b in self.dashboard.pie_buckets(metric)]
            formatter = format_duration if metric == "name" else None
            return chart_data_csv(points, formatter)
        totals = self.dashboard.leaderboard_totals(query, sort, limit)
        return chart_data_csv([(t.student_name, t.total_seconds) for t in totals], format_duration)

    def chart_filename_stem(self, view: str = "pie", metric: str = "level", data: bool = False) -> str:
        """
        Download stem for a chart image or its data CSV.

        Example:
            >>> charts.chart_filename_stem("pie", "name", data=True)
            'student_distribution_data_name'
        """
        if view == "pie":
            return f"student_distribution_data_{metric}" if data else f"student_distribution_{metric}"
        return "student_leaderboard_data" if data else "student_leaderboard"
