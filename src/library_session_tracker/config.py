"""
Configuration for Library Session Tracker.

PURPOSE: Centralized configuration constants and runtime settings.
AI CONTEXT: All configurable values live here - modify this file to change behavior.

CONFIGURATION LEVELS:
- Levels: Valid student levels and their chart colors
- Charts: Palettes, pie top-N cutoff, display limits
- Exports: PDF pagination and header styling
- Runtime: Elapsed ticker interval, preference file location

ENVIRONMENT VARIABLES:
- ANTHROPIC_API_KEY: API key for the library assistant (default: unset)
- LIBRARY_TRACKER_MODEL: Model used by the assistant
- LIBRARY_TRACKER_HOME: Directory holding preferences.json (default: ~/.library_tracker)

USAGE:
    from library_session_tracker.config import Config
    levels = Config.LEVELS
    api_key = Config.get_api_key()
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar


@dataclass(frozen=True)
class Config:
    """
    Immutable configuration container for Library Session Tracker.

    DESIGN: Frozen dataclass ensures configuration immutability at runtime.
    All values are class-level constants - no instance creation needed.

    PREFERENCE STRUCTURE:
        ~/.library_tracker/
        └── preferences.json   # {"theme": "light" | "dark"}
    """

    # =========================================================================
    # LEVEL CONFIGURATION
    # =========================================================================
    LEVELS: ClassVar[tuple[int, ...]] = (100, 200, 300, 400)
    """Student levels offered on the time-in form and log filter."""

    DEFAULT_LEVEL: ClassVar[int] = 100

    LEVEL_COLORS: ClassVar[dict[int, str]] = {
        100: "#6366F1",
        200: "#14B8A6",
        300: "#F43F5E",
        400: "#F59E0B",
    }
    FALLBACK_LEVEL_COLOR: ClassVar[str] = "#6B7280"

    # =========================================================================
    # CHART CONFIGURATION
    # =========================================================================
    PERSON_PALETTE: ClassVar[tuple[str, ...]] = (
        "#6366F1",
        "#14B8A6",
        "#F43F5E",
        "#F59E0B",
        "#8B5CF6",
        "#3B82F6",
        "#EC4899",
        "#10B981",
        "#F97316",
        "#6B7280",
    )

    BAR_PALETTE: ClassVar[tuple[str, ...]] = (
        "#6366f1",
        "#14b8a6",
        "#f43f5e",
        "#0ea5e9",
        "#f59e0b",
        "#84cc16",
        "#8b5cf6",
        "#06b6d4",
        "#d946ef",
    )

    PIE_TOP_N: ClassVar[int] = 9
    OTHER_BUCKET_LABEL: ClassVar[str] = "Other Students"

    DISPLAY_LIMITS: ClassVar[tuple[int | None, ...]] = (5, 10, 20, None)
    """Leaderboard sizes offered by the dashboard. None means all."""

    DEFAULT_DISPLAY_LIMIT: ClassVar[int] = 5

    LONG_SESSION_HOURS: ClassVar[int] = 2
    """Sessions at or above this many hours are flagged in the log."""

    # =========================================================================
    # EXPORT CONFIGURATION
    # =========================================================================
    PDF_ROWS_PER_PAGE: ClassVar[int] = 30
    PDF_HEADER_COLOR: ClassVar[tuple[int, int, int]] = (79, 70, 229)
    SESSION_LOG_TITLE: ClassVar[str] = "Library Session Log"
    LEADERBOARD_TITLE: ClassVar[str] = "Student Leaderboard"

    # =========================================================================
    # RUNTIME CONFIGURATION
    # =========================================================================
    TICK_INTERVAL_SECONDS: ClassVar[float] = 1.0
    PREFERENCES_DIR: ClassVar[str] = ".library_tracker"
    PREFERENCES_FILE: ClassVar[str] = "preferences.json"
    THEMES: ClassVar[frozenset[str]] = frozenset({"light", "dark"})
    DEFAULT_THEME: ClassVar[str] = "light"

    DEFAULT_MODEL: ClassVar[str] = "claude-3-5-haiku-latest"
    ASSISTANT_MAX_TOKENS: ClassVar[int] = 1024

    # =========================================================================
    # ENVIRONMENT-BASED SETTINGS (runtime configurable)
    # =========================================================================
    _api_key_override: ClassVar[str | None] = None
    _home_override: ClassVar[str | None] = None

    @classmethod
    def level_color(cls, level: int) -> str:
        """
        Look up the pie/legend color for a student level.

        Args:
            level: Student level, e.g. 200.

        Returns:
            Hex color string. Unknown levels get FALLBACK_LEVEL_COLOR.

        Example:
            >>> Config.level_color(200)
            '#14B8A6'
            >>> Config.level_color(900)
            '#6B7280'
        """
        return cls.LEVEL_COLORS.get(level, cls.FALLBACK_LEVEL_COLOR)

    @classmethod
    def get_api_key(cls) -> str | None:
        """
        Get the API key for the library assistant.

        Uses a priority system: test overrides take precedence, then the
        ANTHROPIC_API_KEY environment variable. An empty value counts as
        unset.

        Business context: The assistant is optional. Without a key the
        dashboard still works and the assistant reports that it is not
        configured instead of failing.

        Returns:
            API key string, or None when not configured.

        Example:
            >>> Config.set_test_overrides(api_key="test-key")
            >>> Config.get_api_key()
            'test-key'
        """
        if cls._api_key_override is not None:
            return cls._api_key_override or None
        return os.environ.get("ANTHROPIC_API_KEY") or None

    @classmethod
    def get_model_name(cls) -> str:
        """Get the assistant model name from LIBRARY_TRACKER_MODEL or the default."""
        return os.environ.get("LIBRARY_TRACKER_MODEL", cls.DEFAULT_MODEL)

    @classmethod
    def get_preferences_dir(cls) -> str:
        """
        Get the directory that holds the theme preference file.

        Priority: test override, then LIBRARY_TRACKER_HOME, then
        ~/.library_tracker.

        Returns:
            Directory path string.

        Example:
            >>> Config.set_test_overrides(home="/tmp/prefs")
            >>> Config.get_preferences_dir()
            '/tmp/prefs'
        """
        if cls._home_override is not None:
            return cls._home_override
        env_home = os.environ.get("LIBRARY_TRACKER_HOME")
        if env_home:
            return env_home
        return os.path.join(os.path.expanduser("~"), cls.PREFERENCES_DIR)

    @classmethod
    def set_test_overrides(
        cls,
        api_key: str | None = None,
        home: str | None = None,
    ) -> None:
        """
        Set test overrides for environment-based settings.

        Allows tests to control the assistant key and preference directory
        without modifying environment variables. Must call
        reset_test_overrides() in test teardown to avoid affecting other tests.
        Pass an empty string as api_key to force "not configured".

        Args:
            api_key: Override for the assistant API key. None to clear.
            home: Override for the preference directory. None to clear.

        Example:
            >>> Config.set_test_overrides(api_key="")
            >>> Config.get_api_key() is None
            True
            >>> Config.reset_test_overrides()
        """
        cls._api_key_override = api_key
        cls._home_override = home

    @classmethod
    def reset_test_overrides(cls) -> None:
        """Clear overrides set via set_test_overrides()."""
        cls._api_key_override = None
        cls._home_override = None
