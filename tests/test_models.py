"""Tests for models module."""

from __future__ import annotations

import re
from datetime import timedelta

from conftest import BASE_TIME, at

from library_session_tracker.durations import Duration
from library_session_tracker.models import (
    ActiveSession,
    CompletedSession,
    PieBucket,
    StudentTotal,
    generate_session_id,
    local_now,
)


class TestGenerateSessionId:
    """Tests for generate_session_id()."""

    def test_format(self) -> None:
        """Verifies {sanitized_name}_{epoch_ms}_{seq} layout.

        Business context:
        IDs show up in URLs (time-out, edit, delete) and in element ids
        used by the live timer, so they must be URL and HTML safe.
        """
        session_id = generate_session_id("Mary Jane", BASE_TIME)
        epoch_ms = int(BASE_TIME.timestamp() * 1000)
        assert re.fullmatch(rf"mary_jane_{epoch_ms}_\d+", session_id)

    def test_unique_within_same_millisecond(self) -> None:
        """Verifies two ids at the same instant differ."""
        assert generate_session_id("Al", BASE_TIME) != generate_session_id("Al", BASE_TIME)

    def test_symbols_only_name(self) -> None:
        """Verifies a name with no alphanumerics still produces a usable id."""
        assert generate_session_id("!!!", BASE_TIME).startswith("student_")

    def test_long_name_truncated(self) -> None:
        """Verifies the name part is capped at 30 characters."""
        session_id = generate_session_id("x" * 50, BASE_TIME)
        assert session_id.split("_")[0] == "x" * 30


class TestLocalNow:
    """Tests for local_now()."""

    def test_is_timezone_aware(self) -> None:
        """Verifies the default clock returns an aware datetime."""
        assert local_now().tzinfo is not None


class TestActiveSession:
    """Tests for ActiveSession."""

    def test_create_uses_explicit_id(self) -> None:
        """Verifies create() keeps a caller-supplied id."""
        session = ActiveSession.create("Alice", 100, BASE_TIME, session_id="abc")
        assert session.id == "abc"
        assert session.level == 100

    def test_elapsed_seconds(self) -> None:
        """Verifies elapsed time against a later instant."""
        session = ActiveSession.create("Alice", 100, BASE_TIME)
        assert session.elapsed_seconds(BASE_TIME + timedelta(minutes=2, seconds=5)) == 125

    def test_elapsed_never_negative(self) -> None:
        """Verifies a reference time before time_in gives zero."""
        session = ActiveSession.create("Alice", 100, BASE_TIME)
        assert session.elapsed_seconds(BASE_TIME - timedelta(seconds=30)) == 0

    def test_dict_round_trip(self) -> None:
        """Verifies to_dict/from_dict preserve every field."""
        session = ActiveSession.create("Alice", 100, BASE_TIME, session_id="a1")
        data = session.to_dict()
        assert data["time_in"] == BASE_TIME.isoformat()
        assert ActiveSession.from_dict(data) == session


class TestCompletedSession:
    """Tests for CompletedSession."""

    def test_create_computes_duration(self) -> None:
        """Verifies the cached duration matches the timestamps."""
        session = CompletedSession.create("Bob", 200, at(9), at(9, 45))
        assert session.duration == Duration(minutes=45)
        assert session.total_seconds == 2700
        assert session.notes is None

    def test_from_active_keeps_identity(self) -> None:
        """Verifies time-out keeps id, name, level and time_in.

        Business context:
        The log row is the same visit that was on the active list; edits
        and deletes refer to it by the original id.
        """
        active = ActiveSession.create("Alice", 100, at(9), session_id="alice_1")
        completed = CompletedSession.from_active(active, at(10, 30))
        assert (completed.id, completed.student_name, completed.level, completed.time_in) == (
            "alice_1",
            "Alice",
            100,
            at(9),
        )
        assert completed.duration == Duration(hours=1, minutes=30)

    def test_apply_edit_recomputes_duration(self) -> None:
        """Verifies editing times refreshes the cached duration."""
        session = CompletedSession.create("Bob", 200, at(9), at(10))
        session.apply_edit("Robert", 300, at(9), at(9, 20), "note")
        assert session.student_name == "Robert"
        assert session.level == 300
        assert session.duration == Duration(minutes=20)
        assert session.notes == "note"

    def test_from_dict_recomputes_duration(self) -> None:
        """Verifies a stale duration in the payload is ignored."""
        data = CompletedSession.create("Bob", 200, at(9), at(10), session_id="b1").to_dict()
        data["duration"] = {"hours": 9, "minutes": 0, "seconds": 0}
        assert CompletedSession.from_dict(data).duration == Duration(hours=1)

    def test_from_dict_accepts_z_suffix(self) -> None:
        """Verifies UTC timestamps ending in Z parse."""
        session = CompletedSession.from_dict(
            {
                "id": "x",
                "student_name": "Zed",
                "level": 100,
                "time_in": "2025-01-06T14:00:00Z",
                "time_out": "2025-01-06T15:00:00Z",
            }
        )
        assert session.total_seconds == 3600


class TestAggregateModels:
    """Tests for StudentTotal and PieBucket serialization."""

    def test_student_total_to_dict(self) -> None:
        """Verifies all leaderboard fields are serialized."""
        total = StudentTotal("Alice", 100, 6300, 2, 3150.0)
        assert total.to_dict() == {
            "student_name": "Alice",
            "level": 100,
            "total_seconds": 6300,
            "session_count": 2,
            "average_seconds": 3150.0,
        }

    def test_pie_bucket_to_dict(self) -> None:
        """Verifies bucket serialization."""
        assert PieBucket("Level 100", 2, "#6366F1").to_dict() == {
            "label": "Level 100",
            "value": 2,
            "color": "#6366F1",
        }
