"""
Session Service - shared business logic for the library tracker.

PURPOSE: One entry point for every operator action, returning uniform results.
AI CONTEXT: Web routes and the CLI call this layer; it validates form input,
calls the SessionStore, and converts every domain error into a failed
ServiceResult so nothing surfaces as a crash.

ARCHITECTURE:
    web routes ──┐
                 ├──► SessionService ──► SessionStore
    CLI ─────────┘          │
                            ├──► StatisticsEngine
                            └──► LibraryAssistant

USAGE:
    from .session_service import SessionService
    service = SessionService()
    result = service.time_in("Alice", 100)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .assistant import LibraryAssistant
from .errors import (
    AssistantNotConfiguredError,
    ExternalServiceError,
    SessionTrackerError,
)
from .session_store import SessionStore
from .statistics import StatisticsEngine

__all__ = [
    "SessionService",
    "ServiceResult",
    "EMPTY_NAME_MESSAGE",
    "INVALID_RANGE_MESSAGE",
    "ASSISTANT_UNAVAILABLE_MESSAGE",
    "ASSISTANT_FAILED_MESSAGE",
]

logger = logging.getLogger(__name__)

EMPTY_NAME_MESSAGE = "Student name cannot be empty."
INVALID_RANGE_MESSAGE = "Validation failed: Time In must be earlier than Time Out."
ASSISTANT_UNAVAILABLE_MESSAGE = (
    "Could not connect to the AI service. Please ensure the API key is configured correctly."
)
ASSISTANT_FAILED_MESSAGE = "Sorry, I encountered an error. Please try again."


@dataclass
class ServiceResult:
    """
    Result from a service operation.

    Provides a consistent return type for all service methods with
    success/failure status and optional data or error message.

    Attributes:
        success: Whether the operation completed successfully.
        message: Human-readable result message.
        data: Optional dict with operation-specific data.
        error: Optional error message if success is False.
        status: Suggested HTTP status for the web layer.
    """

    success: bool
    message: str
    data: dict[str, Any] | None = None
    error: str | None = None
    status: int = 200

    def to_dict(self) -> dict[str, Any]:
        """Convert this ServiceResult to a JSON-serializable dictionary.

        Fields with None/empty values (data, error) are omitted to keep
        payloads compact. The HTTP status is not part of the payload.

        Returns:
            Dict with keys 'success' and 'message', plus optional 'data'
            and 'error' when present.

        Example:
            >>> result = ServiceResult(success=True, message="Done", data={"id": "abc"})
            >>> result.to_dict()
            {'success': True, 'message': 'Done', 'data': {'id': 'abc'}}
        """
        result: dict[str, Any] = {
            "success": self.success,
            "message": self.message,
        }
        if self.data:
            result["data"] = self.data
        if self.error:
            result["error"] = self.error
        return result


def _failure(message: str, error: str | None = None, status: int = 400) -> ServiceResult:
    return ServiceResult(success=False, message=message, error=error or message, status=status)


def _clean_notes(notes: str | None) -> str | None:
    if notes is None:
        return None
    return notes.strip() or None


class SessionService:
    """
    Core library session service.

    OPERATIONS:
    - time_in / time_out: Sign students in and out
    - add_session / update_session / delete_session: Maintain the session log
    - get_snapshot: Current active and completed sessions
    - suggest_level: Last-used level for a returning student
    - ask_assistant: Question answering over the data
    - get_summary_report: Plain-text summary

    Example:
        >>> service = SessionService()
        >>> result = service.time_in("Alice", 100)
        >>> result.data["session"]["student_name"]
        'Alice'
    """

    def __init__(
        self,
        store: SessionStore | None = None,
        stats_engine: StatisticsEngine | None = None,
        assistant: LibraryAssistant | None = None,
    ) -> None:
        """Initialize the service with its collaborators.

        All dependencies are optional to support easy testing (inject
        fakes) and simple bootstrapping (defaults for production).

        Args:
            store: In-memory session store. Defaults to a new, empty store.
            stats_engine: Aggregation engine. Defaults to StatisticsEngine().
            assistant: Assistant client. Defaults to LibraryAssistant(),
                which reads its key from Config.

        Example:
            >>> service = SessionService()  # production defaults
            >>> service = SessionService(store=SessionStore(clock=fixed_clock))  # testing
        """
        self.store = store or SessionStore()
        self.stats_engine = stats_engine or StatisticsEngine()
        self.assistant = assistant or LibraryAssistant()

    # =========================================================================
    # SIGN IN / SIGN OUT
    # =========================================================================

    def time_in(self, student_name: str, level: int) -> ServiceResult:
        """
        Sign a student in.

        Args:
            student_name: Name or ID as typed (trimmed by the store).
            level: Student level.

        Returns:
            ServiceResult with data {"session": ActiveSession dict}, or a
            failed result for an empty name or a student already signed in.
        """
        try:
            session = self.store.time_in(student_name, level)
        except SessionTrackerError as e:
            return _failure(str(e))
        return ServiceResult(
            success=True,
            message=f"{session.student_name} signed in",
            data={"session": session.to_dict()},
        )

    def time_out(self, session_id: str) -> ServiceResult:
        """
        Sign a student out.

        Returns:
            ServiceResult with data {"session": CompletedSession dict}. An
            unknown id changes nothing and yields a failed result with
            status 404.
        """
        completed = self.store.time_out(session_id)
        if completed is None:
            return _failure("No active session found", f"Unknown session: {session_id}", 404)
        return ServiceResult(
            success=True,
            message=f"{completed.student_name} signed out",
            data={"session": completed.to_dict()},
        )

    # =========================================================================
    # SESSION LOG MAINTENANCE
    # =========================================================================

    def add_session(
        self,
        student_name: str,
        level: int,
        time_in: datetime,
        time_out: datetime,
        notes: str | None = None,
    ) -> ServiceResult:
        """
        Backfill a completed session from the "Add Session" form.

        Validates like the form: the trimmed name must be non-empty and
        time_in must precede time_out. Name and notes are stored trimmed;
        blank notes are stored as None.

        Returns:
            ServiceResult with data {"session": CompletedSession dict}.
        """
        name = student_name.strip()
        if not name:
            return _failure(EMPTY_NAME_MESSAGE)
        try:
            session = self.store.add_completed(name, level, time_in, time_out, _clean_notes(notes))
        except SessionTrackerError:
            return _failure(INVALID_RANGE_MESSAGE)
        return ServiceResult(
            success=True,
            message=f"Session added for {session.student_name}",
            data={"session": session.to_dict()},
        )

    def update_session(
        self,
        session_id: str,
        student_name: str,
        level: int,
        time_in: datetime,
        time_out: datetime,
        notes: str | None = None,
    ) -> ServiceResult:
        """
        Apply the "Edit Session" form to a completed session.

        Returns:
            ServiceResult with the updated session. Empty names and
            invalid ranges fail with 400; an unknown id fails with 404.
        """
        name = student_name.strip()
        if not name:
            return _failure(EMPTY_NAME_MESSAGE)
        if time_in >= time_out:
            return _failure(INVALID_RANGE_MESSAGE)

        if not self.store.update_completed(session_id, name, level, time_in, time_out, _clean_notes(notes)):
            return _failure("Session not found", f"Unknown session: {session_id}", 404)

        session = self.store.get_completed(session_id)
        return ServiceResult(
            success=True,
            message=f"Session updated for {name}",
            data={"session": session.to_dict() if session else None},
        )

    def delete_session(self, session_id: str) -> ServiceResult:
        """Delete a completed session; unknown ids fail with 404."""
        if not self.store.delete_completed(session_id):
            return _failure("Session not found", f"Unknown session: {session_id}", 404)
        return ServiceResult(success=True, message="Session deleted", data={"session_id": session_id})

    # =========================================================================
    # READS
    # =========================================================================

    def get_snapshot(self) -> ServiceResult:
        """Both collections as dicts, plus the known student names."""
        return ServiceResult(
            success=True,
            message="Current sessions",
            data={
                "active_sessions": [s.to_dict() for s in self.store.active_sessions],
                "completed_sessions": [s.to_dict() for s in self.store.completed_sessions],
                "known_names": self.store.known_names(),
            },
        )

    def suggest_level(self, student_name: str) -> int | None:
        """
        Level a returning student used last time.

        Completed sessions are newest-first after a time-out, so the first
        case-insensitive name match is taken as the latest.

        Business context: Pre-selects the level on the time-in form so
        regular visitors only need to type their name.

        Args:
            student_name: Name as typed.

        Returns:
            The level of the matching session, or None for unknown names.

        Example:
            >>> service.suggest_level("ALICE")
            200
        """
        key = student_name.strip().lower()
        if not key:
            return None
        for session in self.store.completed_sessions:
            if session.student_name.lower() == key:
                return session.level
        return None

    def get_summary_report(self) -> str:
        """Plain-text report of the current data."""
        return self.stats_engine.generate_summary_report(
            self.store.active_sessions, self.store.completed_sessions
        )

    # =========================================================================
    # ASSISTANT
    # =========================================================================

    def ask_assistant(self, question: str) -> ServiceResult:
        """
        Ask the library assistant a question about the current data.

        Failures never raise: a missing or rejected API key yields the
        "could not connect" message, anything else a generic apology.
        Both come back as failed results with status 503 whose message
        is ready to show in the chat window.

        Args:
            question: Free-text question. Blank questions are rejected.

        Returns:
            ServiceResult with data {"answer": str} on success.
        """
        trimmed = question.strip()
        if not trimmed:
            return _failure("Please enter a question.")

        try:
            answer = self.assistant.ask(
                trimmed,
                self.store.active_sessions,
                self.store.completed_sessions,
                self.store.now(),
            )
        except AssistantNotConfiguredError as e:
            logger.warning(f"Assistant unavailable: {e}")
            return _failure(ASSISTANT_UNAVAILABLE_MESSAGE, str(e), 503)
        except ExternalServiceError as e:
            logger.error(f"Assistant failed: {e}")
            return _failure(ASSISTANT_FAILED_MESSAGE, str(e), 503)
        except ImportError as e:
            logger.error(f"Assistant client not installed: {e}")
            return _failure(ASSISTANT_UNAVAILABLE_MESSAGE, str(e), 503)

        return ServiceResult(success=True, message="Answer ready", data={"answer": answer})
