"""
Pytest configuration and shared fixtures for Library Session Tracker tests.

This module contains:
- MockFileSystem: In-memory filesystem for the theme preference file
- FakeClock: Controllable clock for the session store
- Shared fixtures available to all test modules
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timedelta, timezone

import pytest

from library_session_tracker.config import Config
from library_session_tracker.session_service import SessionService
from library_session_tracker.session_store import SessionStore
from library_session_tracker.statistics import StatisticsEngine

TZ = timezone(timedelta(hours=-5))
BASE_TIME = datetime(2025, 1, 6, 9, 0, 0, tzinfo=TZ)


class MockFileSystem:
    """
    In-memory file system for testing.

    Simulates a file system using dictionaries:
    - _files: dict mapping path -> content (str)
    - _dirs: set of directory paths
    - _read_only: paths whose writes raise PermissionError

    FEATURES:
    - No actual I/O operations
    - Easy to inspect state
    - Supports write-failure simulation
    """

    def __init__(self) -> None:
        self._files: dict[str, str] = {}
        self._dirs: set[str] = set()
        self._read_only: set[str] = set()

    def exists(self, path: str) -> bool:
        """True if path is a mock file or directory."""
        return path in self._files or path in self._dirs

    def makedirs(self, path: str, exist_ok: bool = False) -> None:
        """
        Create mock directory and parent directories.

        Raises:
            OSError: If directory exists and exist_ok is False,
                or if path is an existing file.
        """
        if path in self._dirs:
            if not exist_ok:
                raise OSError(f"Directory exists: {path}")
            return

        if path in self._files:
            raise OSError(f"Path is a file, not directory: {path}")

        parts = path.rstrip("/").split("/")
        for i in range(1, len(parts) + 1):
            parent = "/".join(parts[:i])
            if parent:
                self._dirs.add(parent)

    def read_text(self, path: str, _encoding: str = "utf-8") -> str:
        """
        Read mock file contents.

        Raises:
            FileNotFoundError: If path not in _files.
        """
        if path not in self._files:
            raise FileNotFoundError(f"No such file: {path}")
        return self._files[path]

    def write_text(self, path: str, content: str, _encoding: str = "utf-8") -> None:
        """
        Write content to mock file.

        Raises:
            PermissionError: If path was marked read-only.
            FileNotFoundError: If the parent directory does not exist.
        """
        if path in self._read_only:
            raise PermissionError(f"Permission denied: {path}")
        parent = path.rsplit("/", 1)[0]
        if parent and parent not in self._dirs:
            raise FileNotFoundError(f"No such file or directory: {path}")
        self._files[path] = content

    # Test helpers

    def set_file(self, path: str, content: str) -> None:
        """Place a file (and its parent directory) directly."""
        parent = path.rsplit("/", 1)[0]
        if parent:
            self.makedirs(parent, exist_ok=True)
        self._files[path] = content

    def get_file(self, path: str) -> str | None:
        """Return file content, or None if missing."""
        return self._files.get(path)

    def set_read_only(self, path: str) -> None:
        """Make subsequent writes to path fail."""
        self._read_only.add(path)


class FakeClock:
    """
    Controllable clock for SessionStore.

    Example:
        >>> clock = FakeClock()
        >>> clock.advance(minutes=5)
        >>> clock().minute
        5
    """

    def __init__(self, start: datetime = BASE_TIME) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta: float) -> datetime:
        """Move time forward by a timedelta(**delta) and return the new time."""
        self.current = self.current + timedelta(**delta)
        return self.current

    def set(self, moment: datetime) -> None:
        """Jump to an absolute time."""
        self.current = moment


def at(hour: int, minute: int = 0, second: int = 0, day: int = 6) -> datetime:
    """Timestamp on January `day`, 2025 in the test timezone."""
    return datetime(2025, 1, day, hour, minute, second, tzinfo=TZ)


@pytest.fixture(autouse=True)
def reset_config() -> Iterator[None]:
    """Clear Config test overrides after every test."""
    yield
    Config.reset_test_overrides()


@pytest.fixture
def mock_fs() -> MockFileSystem:
    """Fresh in-memory filesystem for each test."""
    return MockFileSystem()


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at 2025-01-06 09:00 (UTC-5)."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> SessionStore:
    """Empty store driven by the fake clock."""
    return SessionStore(clock=clock)


@pytest.fixture
def populated_store(store: SessionStore) -> SessionStore:
    """
    Store with a small completed history and one student signed in.

    Completed (stored newest first after the re-sort):
    - Carol, 300: Jan 7 10:00-10:30 (30m), note "Group study"
    - Alice, 100: Jan 6 13:00-14:00 (1h)
    - Bob,   200: Jan 6 11:00-13:30 (2h 30m)
    - Alice, 100: Jan 6 09:00-09:45 (45m)
    Active:
    - Dave, 400, signed in at the clock's start time
    """
    store.add_completed("Alice", 100, at(9), at(9, 45))
    store.add_completed("Bob", 200, at(11), at(13, 30))
    store.add_completed("Alice", 100, at(13), at(14))
    store.add_completed("Carol", 300, at(10, day=7), at(10, 30, day=7), "Group study")
    store.time_in("Dave", 400)
    return store


@pytest.fixture
def stats_engine() -> StatisticsEngine:
    """Statistics engine with default settings."""
    return StatisticsEngine()


@pytest.fixture
def service(populated_store: SessionStore) -> SessionService:
    """Service over the populated store with an unconfigured assistant."""
    from library_session_tracker.assistant import LibraryAssistant

    return SessionService(store=populated_store, assistant=LibraryAssistant(api_key=""))
