"""
In-memory session store for Library Session Tracker.

PURPOSE: Own the active and completed session collections and enforce
the lifecycle rules when they change.
AI CONTEXT: The only mutation surface for session data. Everything else
(statistics, queries, charts, exports) reads snapshots.

LIFECYCLE:
    time_in ──► ActiveSession ──time_out──► CompletedSession
    add_completed ─────────────────────────► CompletedSession (backfill)
    update_completed / delete_completed ───► edit or remove a record

ORDERING:
- time_out prepends the new completed session
- add_completed puts the new session first, then re-sorts the whole
  collection descending by time_in
- update_completed edits in place and does NOT re-sort

ATOMICITY:
Every operation validates before mutating, so a raised error or a
rejected edit leaves both collections untouched.

USAGE:
    store = SessionStore()
    active = store.time_in("Alice", 100)
    completed = store.time_out(active.id)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime

from .errors import DuplicateActiveSessionError, EmptyNameError, InvalidTimeRangeError
from .models import ActiveSession, CompletedSession, generate_session_id, local_now

__all__ = ["SessionStore"]

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
IdGenerator = Callable[[str, datetime], str]


class SessionStore:
    """
    Owner of the active and completed session collections.

    DESIGN:
    - Single writer: one operator, one process, no locking
    - Injectable clock and id generator for deterministic tests
    - Snapshots are copies, so callers cannot mutate stored records

    Example:
        >>> store = SessionStore(clock=lambda: fixed_time)
        >>> store.time_in("  Alice  ", 100).student_name
        'Alice'
    """

    def __init__(
        self,
        clock: Clock | None = None,
        id_generator: IdGenerator | None = None,
    ) -> None:
        """
        Create an empty store.

        Args:
            clock: Zero-argument callable returning the current time.
                Defaults to timezone-aware local now.
            id_generator: Callable (student_name, timestamp) -> unique id.
                Defaults to generate_session_id().
        """
        self._clock = clock or local_now
        self._id_generator = id_generator or generate_session_id
        self._active: list[ActiveSession] = []
        self._completed: list[CompletedSession] = []

    # =========================================================================
    # SNAPSHOTS
    # =========================================================================

    @property
    def active_sessions(self) -> tuple[ActiveSession, ...]:
        """Copies of the active sessions in sign-in order."""
        return tuple(replace(session) for session in self._active)

    @property
    def completed_sessions(self) -> tuple[CompletedSession, ...]:
        """Copies of the completed sessions in stored order (newest first)."""
        return tuple(replace(session) for session in self._completed)

    def now(self) -> datetime:
        """Current time according to the store's clock."""
        return self._clock()

    def get_active(self, session_id: str) -> ActiveSession | None:
        """Copy of the active session with this id, or None."""
        session = self._find_active(session_id)
        return replace(session) if session else None

    def get_completed(self, session_id: str) -> CompletedSession | None:
        """Copy of the completed session with this id, or None."""
        session = self._find_completed(session_id)
        return replace(session) if session else None

    def known_names(self) -> list[str]:
        """
        Distinct student names from completed sessions.

        Business context: Feeds name autocompletion on the time-in form.
        Names are distinct by exact string and listed in stored order.

        Returns:
            List of names, first occurrence wins.
        """
        seen: dict[str, None] = {}
        for session in self._completed:
            seen.setdefault(session.student_name, None)
        return list(seen)

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def time_in(self, student_name: str, level: int) -> ActiveSession:
        """
        Sign a student in.

        The name is trimmed before validation and storage. A student may
        only have one open visit; the duplicate check ignores case and
        surrounding whitespace.

        Args:
            student_name: Student name or ID as typed.
            level: Student level, e.g. 100.

        Returns:
            Copy of the new ActiveSession.

        Raises:
            EmptyNameError: If the trimmed name is empty.
            DuplicateActiveSessionError: If the student is already signed in.

        Example:
            >>> store.time_in("Alice", 100)
            >>> store.time_in("alice ", 200)
            Traceback (most recent call last):
            DuplicateActiveSessionError: alice is already signed in.
        """
        name = student_name.strip()
        if not name:
            logger.warning("Rejected time-in with empty name")
            raise EmptyNameError()

        key = name.lower()
        if any(session.student_name.strip().lower() == key for session in self._active):
            logger.warning(f"Rejected duplicate time-in for {name}")
            raise DuplicateActiveSessionError(name)

        now = self._clock()
        session = ActiveSession.create(
            name, level, time_in=now, session_id=self._id_generator(name, now)
        )
        self._active.append(session)
        logger.info(f"Timed in {name} (level {level}) as {session.id}")
        return replace(session)

    def time_out(self, session_id: str) -> CompletedSession | None:
        """
        Sign a student out, converting the active session into a completed one.

        The new completed session is prepended so the log shows it first.
        An unknown id is a silent no-op.

        Args:
            session_id: ID of the active session.

        Returns:
            Copy of the new CompletedSession, or None if no active session
            has this id.
        """
        active = self._find_active(session_id)
        if active is None:
            logger.warning(f"Ignored time-out for unknown session {session_id}")
            return None

        completed = CompletedSession.from_active(active, time_out=self._clock())
        self._completed.insert(0, completed)
        self._active.remove(active)
        logger.info(
            f"Timed out {completed.student_name} after {completed.total_seconds}s "
            f"({session_id})"
        )
        return replace(completed)

    def add_completed(
        self,
        student_name: str,
        level: int,
        time_in: datetime,
        time_out: datetime,
        notes: str | None = None,
    ) -> CompletedSession:
        """
        Backfill a completed session that was never timed in.

        The new session is placed first and the entire completed collection
        is then re-sorted descending by time_in. The sort is stable, so the
        new session lands ahead of existing sessions with an equal time_in,
        which keep their prior relative order.

        Args:
            student_name: Student name; surrounding whitespace is trimmed.
            level: Student level.
            time_in: Visit start.
            time_out: Visit end; must be strictly after time_in.
            notes: Optional note.

        Returns:
            Copy of the new CompletedSession.

        Raises:
            InvalidTimeRangeError: If time_in >= time_out.
        """
        name = student_name.strip()
        if time_in >= time_out:
            logger.warning(f"Rejected manual entry for {name}: invalid time range")
            raise InvalidTimeRangeError()

        session = CompletedSession.create(
            name,
            level,
            time_in=time_in,
            time_out=time_out,
            notes=notes,
            session_id=self._id_generator(name, time_in),
        )
        self._completed.insert(0, session)
        self._completed.sort(key=lambda s: s.time_in, reverse=True)
        logger.info(f"Added completed session {session.id} for {name}")
        return replace(session)

    def update_completed(
        self,
        session_id: str,
        student_name: str,
        level: int,
        time_in: datetime,
        time_out: datetime,
        notes: str | None = None,
    ) -> bool:
        """
        Edit a completed session in place.

        All editable fields are replaced and the cached duration is
        recomputed. The collection is not re-sorted, so an edited time_in
        can leave the log out of chronological order until the next
        add_completed.

        Args:
            session_id: ID of the completed session.
            student_name: New name.
            level: New level.
            time_in: New start.
            time_out: New end.
            notes: New note (None clears it).

        Returns:
            True if the session was updated. False, with nothing changed,
            when the range is invalid or the id is unknown.
        """
        if time_in >= time_out:
            logger.warning(f"Ignored edit of {session_id}: invalid time range")
            return False

        session = self._find_completed(session_id)
        if session is None:
            logger.warning(f"Ignored edit of unknown session {session_id}")
            return False

        session.apply_edit(student_name, level, time_in, time_out, notes)
        logger.info(f"Updated completed session {session_id}")
        return True

    def delete_completed(self, session_id: str) -> bool:
        """
        Remove a completed session.

        Returns:
            True if a session was removed, False if the id was unknown.
        """
        session = self._find_completed(session_id)
        if session is None:
            logger.warning(f"Ignored delete of unknown session {session_id}")
            return False
        self._completed.remove(session)
        logger.info(f"Deleted completed session {session_id}")
        return True

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _find_active(self, session_id: str) -> ActiveSession | None:
        return next((s for s in self._active if s.id == session_id), None)

    def _find_completed(self, session_id: str) -> CompletedSession | None:
        return next((s for s in self._completed if s.id == session_id), None)
