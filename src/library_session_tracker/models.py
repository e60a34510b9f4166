"""
Data models for Library Session Tracker.

PURPOSE: Type-safe dataclasses representing core domain entities.
AI CONTEXT: These models define the data schema for visits and derived analytics.

MODEL HIERARCHY:
- ActiveSession: Visit in progress (only a time_in)
- CompletedSession: Closed visit with time_out and cached Duration
- StudentTotal: Derived per (student_name, level) aggregate
- NameTotal: Derived per-student total across all levels
- PieBucket: Derived chart region (label, value, color)

SERIALIZATION:
Session models have to_dict() and from_dict(). Timestamps use ISO 8601.
Derived models only serialize; they are recomputed on every read.

USAGE:
    active = ActiveSession.create("Alice", 100, time_in=now)
    completed = CompletedSession.from_active(active, time_out=later)
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .durations import Duration, duration_between

__all__ = [
    "ActiveSession",
    "CompletedSession",
    "StudentTotal",
    "NameTotal",
    "PieBucket",
    "generate_session_id",
    "local_now",
]

_id_counter = itertools.count(1)


def local_now() -> datetime:
    """Current time as a timezone-aware datetime in the machine's local zone."""
    return datetime.now().astimezone()


def generate_session_id(student_name: str, at: datetime | None = None) -> str:
    """
    Generate a unique session ID from a student name and timestamp.

    Creates a human-readable identifier by combining a sanitized version
    of the name with a millisecond timestamp and a process-wide sequence
    number. The sequence keeps two sign-ins within the same millisecond
    distinct.

    Args:
        student_name: Name to incorporate. Lowercased, non-alphanumerics
            collapsed to underscores, truncated to 30 characters.
        at: Timestamp to embed. Defaults to now.

    Returns:
        Session ID in format {sanitized_name}_{epoch_ms}_{sequence}.

    Example:
        >>> generate_session_id("Mary Jane")
        'mary_jane_1735725600000_1'
    """
    moment = at or local_now()
    sanitized = re.sub(r"[^a-z0-9]+", "_", student_name.lower()).strip("_")[:30] or "student"
    epoch_ms = int(moment.timestamp() * 1000)
    return f"{sanitized}_{epoch_ms}_{next(_id_counter)}"


def _parse_timestamp(value: str | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class ActiveSession:
    """
    Visit in progress.

    LIFECYCLE:
    1. Created on time-in
    2. Displayed with a live elapsed timer
    3. Converted to a CompletedSession on time-out, then discarded

    INVARIANT:
    At most one ActiveSession per case-insensitive student name.
    """

    id: str
    student_name: str
    level: int
    time_in: datetime

    @classmethod
    def create(
        cls,
        student_name: str,
        level: int,
        time_in: datetime,
        session_id: str | None = None,
    ) -> ActiveSession:
        """
        Factory method to create an active session with a generated ID.

        Args:
            student_name: Trimmed student name or ID.
            level: Student level (e.g. 100).
            time_in: Sign-in timestamp.
            session_id: Explicit ID. Generated when omitted.

        Returns:
            New ActiveSession instance.

        Example:
            >>> session = ActiveSession.create("Alice", 100, time_in=now)
            >>> session.level
            100
        """
        return cls(
            id=session_id or generate_session_id(student_name, time_in),
            student_name=student_name,
            level=level,
            time_in=time_in,
        )

    def elapsed_seconds(self, now: datetime) -> int:
        """Whole seconds since time_in; zero if now precedes time_in."""
        return duration_between(self.time_in, now).total_seconds

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize active session to a JSON-compatible dictionary.

        Returns:
            Dict with id, student_name, level and ISO 8601 time_in.
        """
        return {
            "id": self.id,
            "student_name": self.student_name,
            "level": self.level,
            "time_in": self.time_in.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActiveSession:
        """
        Deserialize active session from dictionary.

        Raises:
            KeyError: If id, student_name or time_in is missing.
            ValueError: If time_in is not ISO 8601.
        """
        return cls(
            id=data["id"],
            student_name=data["student_name"],
            level=int(data.get("level", 0)),
            time_in=_parse_timestamp(data["time_in"]),
        )


@dataclass
class CompletedSession:
    """
    Closed visit with both timestamps and a cached duration.

    LIFECYCLE:
    1. Created by time-out of an ActiveSession, or by manual backfill
    2. Edited in place (name, level, times, notes; duration recomputed)
    3. Removed by explicit delete

    INVARIANT:
    time_in < time_out. The store rejects anything else before mutating.
    duration always equals duration_between(time_in, time_out).
    """

    id: str
    student_name: str
    level: int
    time_in: datetime
    time_out: datetime
    duration: Duration
    notes: str | None = None

    @classmethod
    def create(
        cls,
        student_name: str,
        level: int,
        time_in: datetime,
        time_out: datetime,
        notes: str | None = None,
        session_id: str | None = None,
    ) -> CompletedSession:
        """
        Factory method for a manually entered (backfilled) visit.

        Computes the cached duration from the timestamps. Range validation
        is the store's job; this factory only builds the record.

        Args:
            student_name: Trimmed student name.
            level: Student level.
            time_in: Visit start.
            time_out: Visit end.
            notes: Optional free-text note.
            session_id: Explicit ID. Generated when omitted.

        Returns:
            New CompletedSession with duration filled in.

        Example:
            >>> s = CompletedSession.create("Bob", 200, t0, t0 + timedelta(minutes=45))
            >>> s.duration.minutes
            45
        """
        return cls(
            id=session_id or generate_session_id(student_name, time_in),
            student_name=student_name,
            level=level,
            time_in=time_in,
            time_out=time_out,
            duration=duration_between(time_in, time_out),
            notes=notes,
        )

    @classmethod
    def from_active(cls, active: ActiveSession, time_out: datetime) -> CompletedSession:
        """
        Close an active session at time_out.

        The completed record keeps the active session's id, name, level and
        time_in so the transition is traceable.

        Args:
            active: Session being signed out.
            time_out: Sign-out timestamp.

        Returns:
            New CompletedSession without notes.
        """
        return cls(
            id=active.id,
            student_name=active.student_name,
            level=active.level,
            time_in=active.time_in,
            time_out=time_out,
            duration=duration_between(active.time_in, time_out),
        )

    @property
    def total_seconds(self) -> int:
        """Cached duration in seconds."""
        return self.duration.total_seconds

    def apply_edit(
        self,
        student_name: str,
        level: int,
        time_in: datetime,
        time_out: datetime,
        notes: str | None,
    ) -> None:
        """Replace the editable fields and recompute the cached duration."""
        self.student_name = student_name
        self.level = level
        self.time_in = time_in
        self.time_out = time_out
        self.notes = notes
        self.duration = duration_between(time_in, time_out)

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize completed session to a JSON-compatible dictionary.

        Business context: This is the shape handed to the library assistant
        and returned by the JSON API, so keys mirror the dataclass fields.

        Returns:
            Dict with id, student_name, level, ISO time_in/time_out,
            duration {hours, minutes, seconds} and notes.

        Example:
            >>> session.to_dict()["duration"]
            {'hours': 0, 'minutes': 45, 'seconds': 0}
        """
        return {
            "id": self.id,
            "student_name": self.student_name,
            "level": self.level,
            "time_in": self.time_in.isoformat(),
            "time_out": self.time_out.isoformat(),
            "duration": self.duration.to_dict(),
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CompletedSession:
        """
        Deserialize completed session from dictionary.

        The duration is recomputed from the timestamps rather than trusted
        from the payload, keeping the cached value consistent.

        Raises:
            KeyError: If a required field is missing.
            ValueError: If a timestamp is not ISO 8601.
        """
        time_in = _parse_timestamp(data["time_in"])
        time_out = _parse_timestamp(data["time_out"])
        return cls(
            id=data["id"],
            student_name=data["student_name"],
            level=int(data.get("level", 0)),
            time_in=time_in,
            time_out=time_out,
            duration=duration_between(time_in, time_out),
            notes=data.get("notes"),
        )


@dataclass(frozen=True)
class StudentTotal:
    """Aggregate of all completed visits for one (student_name, level) pair."""

    student_name: str
    level: int
    total_seconds: int
    session_count: int
    average_seconds: float

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {
            "student_name": self.student_name,
            "level": self.level,
            "total_seconds": self.total_seconds,
            "session_count": self.session_count,
            "average_seconds": self.average_seconds,
        }


@dataclass(frozen=True)
class NameTotal:
    """A student's time summed across every level they visited under."""

    student_name: str
    total_seconds: int


@dataclass(frozen=True)
class PieBucket:
    """One labeled region of a pie chart."""

    label: str
    value: float
    color: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return {"label": self.label, "value": self.value, "color": self.color}
