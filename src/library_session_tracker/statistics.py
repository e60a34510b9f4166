"""
Statistics engine for Library Session Tracker.

PURPOSE: Derive per-student totals, pie buckets and summary figures from
completed sessions.
AI CONTEXT: Pure data processing - no visualization, no I/O. Everything
is recomputed from the session list on every call.

AGGREGATIONS:
1. Per student: totals keyed by exact (student_name, level)
2. Per level: number of student totals in each level (pie)
3. Per name: time summed across levels, top N plus "Other Students" (pie)
4. Report: plain-text summary of the current dataset

GROUPING NOTE:
Grouping uses exact-case names, while the active-session duplicate check
is case-insensitive. "alice" and "Alice" are therefore two leaderboard rows.

USAGE:
    engine = StatisticsEngine()
    totals = engine.aggregate_by_student(store.completed_sessions)
    pie = engine.buckets_by_level(totals)
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from .config import Config
from .durations import Duration, decompose, format_duration
from .models import ActiveSession, CompletedSession, NameTotal, PieBucket, StudentTotal

__all__ = ["StatisticsEngine"]


class StatisticsEngine:
    """
    Calculator for library visit statistics.

    DESIGN:
    - Stateless apart from chart settings
    - Pure: No side effects, only data transformation
    - Configurable: Top-N cutoff and palette from Config or constructor
    """

    def __init__(
        self,
        top_n: int | None = None,
        palette: Sequence[str] | None = None,
    ) -> None:
        """
        Initialize statistics engine.

        Args:
            top_n: Number of named buckets in the per-student pie before the
                rest collapse into "Other Students". Default: Config.PIE_TOP_N.
            palette: Colors cycled over per-student buckets.
                Default: Config.PERSON_PALETTE.

        Example:
            >>> StatisticsEngine().top_n
            9
        """
        self.top_n = top_n if top_n is not None else Config.PIE_TOP_N
        self.palette = tuple(palette or Config.PERSON_PALETTE)

    def aggregate_by_student(self, sessions: Iterable[CompletedSession]) -> list[StudentTotal]:
        """
        Group completed sessions into per-student totals.

        Groups by the exact (student_name, level) pair, so the same student
        visiting under two levels produces two rows. Rows come out in the
        order each pair was first seen.

        Business context: This is the leaderboard. Librarians sort and
        trim it, and it feeds the level pie and the bar chart.

        Args:
            sessions: Completed sessions, typically a store snapshot.

        Returns:
            List of StudentTotal with average = total / count.

        Example:
            >>> totals = engine.aggregate_by_student(sessions)
            >>> totals[0].session_count
            2
        """
        totals: dict[tuple[str, int], list[int]] = {}
        for session in sessions:
            key = (session.student_name, session.level)
            entry = totals.setdefault(key, [0, 0])
            entry[0] += session.total_seconds
            entry[1] += 1

        return [
            StudentTotal(
                student_name=name,
                level=level,
                total_seconds=total,
                session_count=count,
                average_seconds=total / count,
            )
            for (name, level), (total, count) in totals.items()
        ]

    def buckets_by_level(self, totals: Iterable[StudentTotal]) -> list[PieBucket]:
        """
        Count student totals per level for the level pie chart.

        Each bucket's value is the number of (student, level) rows in that
        level, not time spent. Buckets are sorted ascending by level and
        labelled "Level N".

        Args:
            totals: Output of aggregate_by_student().

        Returns:
            One PieBucket per level present. Empty input gives [].

        Example:
            >>> [b.label for b in engine.buckets_by_level(totals)]
            ['Level 100', 'Level 200']
        """
        counts: dict[int, int] = {}
        for total in totals:
            counts[total.level] = counts.get(total.level, 0) + 1

        return [
            PieBucket(label=f"Level {level}", value=count, color=Config.level_color(level))
            for level, count in sorted(counts.items())
        ]

    def totals_by_name(self, sessions: Iterable[CompletedSession]) -> list[NameTotal]:
        """
        Sum time per exact-case student name across all levels.

        Returns:
            NameTotal list sorted descending by total_seconds. Ties keep
            first-seen order.
        """
        totals: dict[str, int] = {}
        for session in sessions:
            totals[session.student_name] = totals.get(session.student_name, 0) + (
                session.total_seconds
            )
        ranked = [NameTotal(student_name=name, total_seconds=total) for name, total in totals.items()]
        ranked.sort(key=lambda item: item.total_seconds, reverse=True)
        return ranked

    def buckets_by_student(
        self,
        name_totals: Sequence[NameTotal],
        top_n: int | None = None,
    ) -> list[PieBucket]:
        """
        Build the per-student time pie: top N names plus an "Other Students" slice.

        Colors are taken from the palette in order and cycle when the
        bucket count exceeds it. The "Other Students" bucket only appears
        when at least one name falls outside the top N.

        Args:
            name_totals: Output of totals_by_name() (already ranked).
            top_n: Override for the engine's top_n.

        Returns:
            List of PieBucket with values in seconds.

        Example:
            >>> buckets = engine.buckets_by_student(engine.totals_by_name(sessions))
            >>> buckets[-1].label
            'Other Students'
        """
        limit = self.top_n if top_n is None else top_n
        rows: list[tuple[str, float]] = [
            (item.student_name, item.total_seconds) for item in name_totals[:limit]
        ]
        rest = name_totals[limit:]
        if rest:
            rows.append((Config.OTHER_BUCKET_LABEL, sum(item.total_seconds for item in rest)))

        return [
            PieBucket(label=label, value=value, color=self.palette[index % len(self.palette)])
            for index, (label, value) in enumerate(rows)
        ]

    def total_duration(self, sessions: Iterable[CompletedSession]) -> Duration:
        """Sum of session durations, e.g. for the filtered session log footer."""
        return decompose(sum(session.total_seconds for session in sessions))

    def total_session_count(self, totals: Iterable[StudentTotal]) -> int:
        """Number of completed sessions represented by the totals."""
        return sum(total.session_count for total in totals)

    def max_total_seconds(self, totals: Iterable[StudentTotal]) -> int:
        """Largest total_seconds among the totals; 1 when empty so ratios stay defined."""
        return max((total.total_seconds for total in totals), default=0) or 1

    def generate_summary_report(
        self,
        active: Sequence[ActiveSession],
        completed: Sequence[CompletedSession],
    ) -> str:
        """
        Generate a human-readable summary of the current dataset.

        Business context: A quick text snapshot for the dashboard footer and
        the assistant's context. It lists visit counts, time spent, the level
        mix and the five busiest students.

        Args:
            active: Currently signed-in sessions.
            completed: Completed sessions.

        Returns:
            Multi-line report string.

        Example:
            >>> print(engine.generate_summary_report(active, completed))
            ==================================================
            LIBRARY SESSION TRACKER - SUMMARY REPORT
            ...
        """
        totals = self.aggregate_by_student(completed)
        total_seconds = self.total_duration(completed).total_seconds
        average = total_seconds / len(completed) if completed else 0

        lines = [
            "=" * 50,
            "LIBRARY SESSION TRACKER - SUMMARY REPORT",
            "=" * 50,
            "",
            "SESSIONS",
            f"  • Signed in now: {len(active)}",
            f"  • Completed sessions: {len(completed)}",
            f"  • Distinct students: {len(totals)}",
            f"  • Total time: {format_duration(total_seconds)}",
            f"  • Average session: {format_duration(average)}",
            "",
            "LEVELS",
        ]

        for bucket in self.buckets_by_level(totals):
            lines.append(f"  • {bucket.label}: {int(bucket.value)}")

        lines.extend(["", "TOP STUDENTS"])
        for item in self.totals_by_name(completed)[:5]:
            lines.append(f"  • {item.student_name}: {format_duration(item.total_seconds)}")

        lines.extend(["", "=" * 50])
        return "\n".join(lines)
