"""
Error taxonomy for Library Session Tracker.

PURPOSE: Typed exceptions raised by the store, assistant and exporters.
AI CONTEXT: SessionService converts every one of these into a failed
ServiceResult, so none of them reach the operator as a crash.

HIERARCHY:
    SessionTrackerError
    ├── EmptyNameError               # blank name on time-in / manual entry
    ├── DuplicateActiveSessionError  # name already signed in
    ├── InvalidTimeRangeError        # time_in >= time_out
    ├── NotFoundError                # unknown session id
    ├── ExportError                  # nothing to export
    └── ExternalServiceError         # assistant unreachable or failing
        └── AssistantNotConfiguredError
"""

from __future__ import annotations

__all__ = [
    "SessionTrackerError",
    "EmptyNameError",
    "DuplicateActiveSessionError",
    "InvalidTimeRangeError",
    "NotFoundError",
    "ExportError",
    "ExternalServiceError",
    "AssistantNotConfiguredError",
]


class SessionTrackerError(Exception):
    """Base exception for all tracker errors."""

    pass


class EmptyNameError(SessionTrackerError):
    """Raised when a student name is blank after trimming."""

    def __init__(self) -> None:
        super().__init__("Please enter a student name or ID.")


class DuplicateActiveSessionError(SessionTrackerError):
    """Raised when the student already has an active session."""

    def __init__(self, student_name: str) -> None:
        self.student_name = student_name
        super().__init__(f"{student_name} is already signed in.")


class InvalidTimeRangeError(SessionTrackerError):
    """Raised when time_in is not strictly earlier than time_out."""

    def __init__(self) -> None:
        super().__init__("Time In must be earlier than Time Out.")


class NotFoundError(SessionTrackerError):
    """Raised when an operation references an unknown session id."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"No session with ID: {session_id}")


class ExportError(SessionTrackerError):
    """Raised when an export is requested for an empty data set."""

    pass


class ExternalServiceError(SessionTrackerError):
    """Raised when the text-generation service fails."""

    pass


class AssistantNotConfiguredError(ExternalServiceError):
    """Raised when no API key is configured for the assistant."""

    def __init__(self) -> None:
        super().__init__("API key is not configured.")
