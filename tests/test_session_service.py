"""Tests for session_service module."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from conftest import FakeClock, at

from library_session_tracker.errors import AssistantNotConfiguredError, ExternalServiceError
from library_session_tracker.session_service import (
    ASSISTANT_FAILED_MESSAGE,
    ASSISTANT_UNAVAILABLE_MESSAGE,
    EMPTY_NAME_MESSAGE,
    INVALID_RANGE_MESSAGE,
    ServiceResult,
    SessionService,
)
from library_session_tracker.session_store import SessionStore


class TestServiceResult:
    """Tests for ServiceResult.to_dict."""

    def test_omits_empty_fields(self) -> None:
        """Verifies data and error are dropped when unset."""
        assert ServiceResult(success=True, message="ok").to_dict() == {"success": True, "message": "ok"}

    def test_includes_error(self) -> None:
        """Verifies failures carry their error text but not the status."""
        payload = ServiceResult(success=False, message="m", error="e", status=404).to_dict()
        assert payload == {"success": False, "message": "m", "error": "e"}


class TestTimeInOut:
    """Tests for SessionService.time_in and time_out."""

    def test_time_in_success(self, service: SessionService) -> None:
        """Verifies the new session is returned as a dict."""
        result = service.time_in("  Erin ", 200)
        assert result.success
        assert result.data is not None
        assert result.data["session"]["student_name"] == "Erin"
        assert result.message == "Erin signed in"

    def test_time_in_duplicate(self, service: SessionService) -> None:
        """Verifies a duplicate sign-in fails with 400 and the store's message."""
        result = service.time_in("dave", 100)
        assert not result.success
        assert result.status == 400
        assert result.message == "dave is already signed in."

    def test_time_in_blank(self, service: SessionService) -> None:
        """Verifies a blank name fails."""
        result = service.time_in("   ", 100)
        assert not result.success
        assert result.message == "Please enter a student name or ID."

    def test_time_out(self, service: SessionService, clock: FakeClock) -> None:
        """Verifies the signed-out session moves to the log."""
        active_id = service.store.active_sessions[0].id
        clock.advance(minutes=20)

        result = service.time_out(active_id)

        assert result.success
        assert result.data is not None
        assert result.data["session"]["duration"] == {"hours": 0, "minutes": 20, "seconds": 0}
        assert service.store.active_sessions == ()

    def test_time_out_unknown(self, service: SessionService) -> None:
        """Verifies an unknown id yields 404 and changes nothing."""
        result = service.time_out("missing")
        assert (result.success, result.status) == (False, 404)
        assert len(service.store.active_sessions) == 1


class TestLogMaintenance:
    """Tests for add_session, update_session and delete_session."""

    def test_add_session(self, service: SessionService) -> None:
        """Verifies a backfilled session is stored with trimmed notes."""
        result = service.add_session(" Frank ", 300, at(15), at(16), "  ")
        assert result.success
        assert result.data is not None
        assert result.data["session"]["notes"] is None
        assert service.store.completed_sessions[1].student_name == "Frank"

    def test_add_session_blank_name(self, service: SessionService) -> None:
        """Verifies the form-level empty-name message."""
        result = service.add_session("", 100, at(9), at(10))
        assert result.message == EMPTY_NAME_MESSAGE
        assert result.status == 400

    def test_add_session_bad_range(self, service: SessionService) -> None:
        """Verifies the form-level time-range message."""
        result = service.add_session("Frank", 100, at(10), at(9))
        assert result.message == INVALID_RANGE_MESSAGE
        assert len(service.store.completed_sessions) == 4

    def test_update_session(self, service: SessionService) -> None:
        """Verifies an edit is applied and echoed back.

        Business context:
        Librarians fix typos and wrong sign-out times after the fact; the
        log and leaderboard must reflect the correction immediately.
        """
        target = service.store.completed_sessions[0]

        result = service.update_session(target.id, "Caroline", 400, at(10, day=7), at(11, day=7), " late ")

        assert result.success
        assert result.data is not None
        assert result.data["session"]["student_name"] == "Caroline"
        assert result.data["session"]["notes"] == "late"
        assert service.store.completed_sessions[0].level == 400

    @pytest.mark.parametrize(
        ("name", "start", "end", "message"),
        [
            (" ", at(9), at(10), EMPTY_NAME_MESSAGE),
            ("Bob", at(10), at(10), INVALID_RANGE_MESSAGE),
        ],
    )
    def test_update_validation(
        self, service: SessionService, name: str, start: object, end: object, message: str
    ) -> None:
        """Verifies invalid edits fail with 400 and leave the record alone."""
        target = service.store.completed_sessions[0]
        result = service.update_session(target.id, name, 100, start, end)  # type: ignore[arg-type]
        assert (result.success, result.status, result.message) == (False, 400, message)
        assert service.store.completed_sessions[0] == target

    def test_update_unknown(self, service: SessionService) -> None:
        """Verifies an unknown id yields 404."""
        assert service.update_session("missing", "X", 100, at(9), at(10)).status == 404

    def test_delete(self, service: SessionService) -> None:
        """Verifies delete removes the row and reports its id."""
        target_id = service.store.completed_sessions[0].id
        result = service.delete_session(target_id)
        assert result.success
        assert result.data == {"session_id": target_id}
        assert service.store.get_completed(target_id) is None

    def test_delete_unknown(self, service: SessionService) -> None:
        """Verifies deleting an unknown id yields 404."""
        assert service.delete_session("missing").status == 404


class TestReads:
    """Tests for get_snapshot, suggest_level and get_summary_report."""

    def test_snapshot(self, service: SessionService) -> None:
        """Verifies both collections and known names are included."""
        data = service.get_snapshot().data
        assert data is not None
        assert [s["student_name"] for s in data["active_sessions"]] == ["Dave"]
        assert len(data["completed_sessions"]) == 4
        assert data["known_names"] == ["Carol", "Alice", "Bob"]

    @pytest.mark.parametrize(
        ("name", "level"),
        [("bob", 200), ("  CAROL ", 300), ("Zed", None), ("", None)],
    )
    def test_suggest_level(self, service: SessionService, name: str, level: int | None) -> None:
        """Verifies the case-insensitive last-used level lookup."""
        assert service.suggest_level(name) == level

    def test_suggest_level_prefers_first_match(self) -> None:
        """Verifies the first matching completed session wins."""
        service = SessionService(store=SessionStore(clock=FakeClock()), assistant=MagicMock())
        service.store.add_completed("Amy", 100, at(9), at(10))
        service.store.add_completed("amy", 300, at(12), at(13))
        assert service.suggest_level("AMY") == 300

    def test_summary_report(self, service: SessionService) -> None:
        """Verifies the report comes from the statistics engine."""
        assert "Signed in now: 1" in service.get_summary_report()


class TestAskAssistant:
    """Tests for SessionService.ask_assistant."""

    @pytest.fixture
    def assistant(self) -> MagicMock:
        return MagicMock()

    @pytest.fixture
    def svc(self, populated_store: SessionStore, assistant: MagicMock) -> SessionService:
        return SessionService(store=populated_store, assistant=assistant)

    def test_answer(self, svc: SessionService, assistant: MagicMock, clock: FakeClock) -> None:
        """Verifies the trimmed question, both snapshots and the clock are passed."""
        assistant.ask.return_value = "One student."

        result = svc.ask_assistant("  Who is here? ")

        assert result.success
        assert result.data == {"answer": "One student."}
        question, active, completed, now = assistant.ask.call_args.args
        assert question == "Who is here?"
        assert [s.student_name for s in active] == ["Dave"]
        assert len(completed) == 4
        assert now == clock()

    def test_blank_question(self, svc: SessionService, assistant: MagicMock) -> None:
        """Verifies blank questions never reach the assistant."""
        assert not svc.ask_assistant("  ").success
        assistant.ask.assert_not_called()

    def test_not_configured(self, service: SessionService) -> None:
        """Verifies a missing key gives the connection message with 503."""
        result = service.ask_assistant("Hi")
        assert (result.success, result.status) == (False, 503)
        assert result.message == ASSISTANT_UNAVAILABLE_MESSAGE

    @pytest.mark.parametrize(
        ("error", "message"),
        [
            (AssistantNotConfiguredError(), ASSISTANT_UNAVAILABLE_MESSAGE),
            (ExternalServiceError("boom"), ASSISTANT_FAILED_MESSAGE),
        ],
    )
    def test_failures(
        self, svc: SessionService, assistant: MagicMock, error: Exception, message: str
    ) -> None:
        """Verifies assistant errors become friendly chat messages."""
        assistant.ask.side_effect = error
        result = svc.ask_assistant("Hi")
        assert (result.success, result.status, result.message) == (False, 503, message)
