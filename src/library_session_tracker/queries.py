"""
Filtering, sorting and limiting for Library Session Tracker views.

PURPOSE: Pure query helpers behind the session log, active list and leaderboard.
AI CONTEXT: No state and no I/O. Each function takes a list and returns a new one.

QUERIES:
- SessionFilter / filter_sessions: Session log filters (name, level, date range)
- filter_by_name: Free-text search on anything with a student_name
- sort_totals: Leaderboard ordering with a name tie-break
- sort_sessions: Active list / session ordering
- SortConfig: Click-to-toggle sort state for table headers
- apply_limit: Leaderboard display limit (5 / 10 / 20 / all)

TIE-BREAKS:
Secondary keys are always ascending, whatever the primary direction.
Sorting descending by total still lists tied students A to Z.

USAGE:
    rows = filter_by_name(totals, "ali")
    rows = sort_totals(rows, "total_seconds", "descending")
    rows = apply_limit(rows, 5)
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Literal, Protocol, TypeVar

from .models import ActiveSession, CompletedSession, StudentTotal

__all__ = [
    "SortDirection",
    "TOTAL_SORT_KEYS",
    "SESSION_SORT_KEYS",
    "SessionFilter",
    "SortConfig",
    "filter_sessions",
    "filter_by_name",
    "sort_totals",
    "sort_sessions",
    "apply_limit",
]

SortDirection = Literal["ascending", "descending"]

TOTAL_SORT_KEYS: tuple[str, ...] = (
    "name",
    "level",
    "total_seconds",
    "average_seconds",
    "session_count",
)
SESSION_SORT_KEYS: tuple[str, ...] = ("name", "time_in", "level", "duration")


class _Named(Protocol):
    student_name: str


NamedT = TypeVar("NamedT", bound=_Named)
ItemT = TypeVar("ItemT")


@dataclass(frozen=True)
class SessionFilter:
    """
    Session log filter criteria.

    Every field is optional; an empty filter matches everything. Dates
    are inclusive: start_date covers the whole of its first day and
    end_date the whole of its last day.

    Attributes:
        query: Case-insensitive substring of the student name.
        level: Exact level, or None for all levels.
        start_date: Earliest calendar day of time_in.
        end_date: Latest calendar day of time_in.
    """

    query: str = ""
    level: int | None = None
    start_date: date | None = None
    end_date: date | None = None

    @property
    def is_active(self) -> bool:
        """True when any criterion is set. Drives the "filters active" empty state."""
        return bool(self.query) or self.level is not None or bool(self.start_date or self.end_date)

    def matches(self, session: CompletedSession) -> bool:
        """
        Check a completed session against every criterion.

        Date bounds are widened to the start and end of day in the
        session's own timezone before comparing.

        Args:
            session: Session to test.

        Returns:
            True when the session passes all set criteria.

        Example:
            >>> SessionFilter(query="ALI").matches(alice_session)
            True
        """
        if self.query and self.query.lower() not in session.student_name.lower():
            return False
        if self.level is not None and session.level != self.level:
            return False

        tz = session.time_in.tzinfo
        if self.start_date is not None:
            start = datetime.combine(self.start_date, time.min, tzinfo=tz)
            if session.time_in < start:
                return False
        if self.end_date is not None:
            end = datetime.combine(self.end_date, time.max, tzinfo=tz)
            if session.time_in > end:
                return False
        return True


@dataclass(frozen=True)
class SortConfig:
    """
    Sort state of a table: which key, which direction.

    Example:
        >>> SortConfig("total_seconds", "descending").toggled("name")
        SortConfig(key='name', direction='ascending')
    """

    key: str
    direction: SortDirection = "ascending"

    def toggled(self, key: str) -> SortConfig:
        """
        Sort state after a header click.

        Clicking the current key while ascending flips to descending;
        any other click sorts ascending by the clicked key.
        """
        if key == self.key and self.direction == "ascending":
            return SortConfig(key, "descending")
        return SortConfig(key, "ascending")


def filter_sessions(
    sessions: Iterable[CompletedSession],
    session_filter: SessionFilter,
) -> list[CompletedSession]:
    """Completed sessions passing the filter, in their original order."""
    return [session for session in sessions if session_filter.matches(session)]


def filter_by_name(items: Iterable[NamedT], query: str) -> list[NamedT]:
    """
    Keep items whose student_name contains query (case-insensitive).

    Works for StudentTotal, ActiveSession and CompletedSession alike.
    An empty or whitespace query keeps everything.
    """
    needle = query.strip().lower()
    if not needle:
        return list(items)
    return [item for item in items if needle in item.student_name.lower()]


def _casefold_name(item: _Named) -> str:
    return item.student_name.casefold()


def _two_key_sort(
    items: Iterable[ItemT],
    primary: Callable[[ItemT], Any],
    secondary: Callable[[ItemT], Any],
    direction: SortDirection,
) -> list[ItemT]:
    # Stable sorts: secondary ascending first, then primary in the requested direction.
    ordered = sorted(items, key=secondary)
    ordered.sort(key=primary, reverse=direction == "descending")
    return ordered


_TOTAL_KEYS: dict[str, Callable[[StudentTotal], Any]] = {
    "name": _casefold_name,
    "level": lambda total: total.level,
    "total_seconds": lambda total: total.total_seconds,
    "average_seconds": lambda total: total.average_seconds,
    "session_count": lambda total: total.session_count,
}


def sort_totals(
    totals: Iterable[StudentTotal],
    key: str = "total_seconds",
    direction: SortDirection = "descending",
) -> list[StudentTotal]:
    """
    Sort leaderboard rows.

    Ties on the primary key are broken by case-insensitive name
    ascending. When sorting by name itself, ties (same name, different
    levels) fall back to level ascending.

    Business context: The leaderboard defaults to most time spent first;
    librarians click headers to re-rank by name, level, averages or visits.

    Args:
        totals: Leaderboard rows.
        key: One of TOTAL_SORT_KEYS.
        direction: "ascending" or "descending".

    Returns:
        New sorted list.

    Raises:
        ValueError: If key is not a known sort key.

    Example:
        >>> [t.student_name for t in sort_totals(totals, "total_seconds")]
        ['Bob', 'Alice', 'Carol']
    """
    if key not in _TOTAL_KEYS:
        raise ValueError(f"Unknown sort key: {key}")
    secondary: Callable[[StudentTotal], Any] = (
        (lambda total: total.level) if key == "name" else _casefold_name
    )
    return _two_key_sort(totals, _TOTAL_KEYS[key], secondary, direction)


_SESSION_KEYS: dict[str, Callable[[Any], Any]] = {
    "name": _casefold_name,
    "time_in": lambda session: session.time_in,
    "level": lambda session: session.level,
    "duration": lambda session: getattr(session, "total_seconds", 0),
}


def sort_sessions(
    sessions: Iterable[ActiveSession | CompletedSession],
    key: str = "time_in",
    direction: SortDirection = "ascending",
) -> list[Any]:
    """
    Sort active or completed sessions.

    Name ties are broken by time_in ascending; ties on any other key by
    case-insensitive name ascending. Active sessions have no duration and
    sort as zero under the "duration" key.

    Raises:
        ValueError: If key is not in SESSION_SORT_KEYS.
    """
    if key not in _SESSION_KEYS:
        raise ValueError(f"Unknown sort key: {key}")
    secondary = _SESSION_KEYS["time_in"] if key == "name" else _casefold_name
    return _two_key_sort(sessions, _SESSION_KEYS[key], secondary, direction)


def apply_limit(items: Sequence[ItemT], limit: int | None) -> list[ItemT]:
    """First `limit` items, or all of them when limit is None."""
    if limit is None:
        return list(items)
    return list(items[:limit])
