"""
Theme preference persistence for Library Session Tracker.

PURPOSE: Remember whether the dashboard is shown light or dark.
AI CONTEXT: The only on-disk state. A missing or corrupt file falls back
to the default theme; a failed write is logged and the in-memory value
still changes.

FILE FORMAT:
    {Config.get_preferences_dir()}/preferences.json
    {"theme": "dark"}

USAGE:
    prefs = ThemePreferenceStore()
    prefs.toggle()   # "light" -> "dark"
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from .config import Config
from .filesystem import FileSystem, RealFileSystem

__all__ = ["ThemePreferenceStore"]

logger = logging.getLogger(__name__)


class ThemePreferenceStore:
    """
    Reads and writes the light/dark theme preference.

    The theme is read once at construction; toggle() and set_theme()
    update memory first and then persist.
    """

    def __init__(
        self,
        preferences_dir: str | None = None,
        filesystem: FileSystem | None = None,
    ) -> None:
        """
        Load the stored theme.

        Args:
            preferences_dir: Directory holding preferences.json.
                Default: Config.get_preferences_dir().
            filesystem: File access. Default: RealFileSystem().

        Example:
            >>> prefs = ThemePreferenceStore("/tmp/prefs", filesystem=mock_fs)
            >>> prefs.theme
            'light'
        """
        self._fs = filesystem or RealFileSystem()
        self.preferences_dir = preferences_dir or Config.get_preferences_dir()
        self.preferences_file = os.path.join(self.preferences_dir, Config.PREFERENCES_FILE)
        self._theme = self._load_theme()

    @property
    def theme(self) -> str:
        """Current theme, "light" or "dark"."""
        return self._theme

    def _read_json(self, default: Any) -> Any:
        try:
            return json.loads(self._fs.read_text(self.preferences_file))
        except FileNotFoundError:
            return default
        except json.JSONDecodeError as e:
            logger.error(f"Invalid JSON in {self.preferences_file}: {e}")
            return default
        except OSError as e:
            logger.error(f"Error reading {self.preferences_file}: {e}")
            return default

    def _write_json(self, data: Any) -> bool:
        try:
            if not self._fs.exists(self.preferences_dir):
                self._fs.makedirs(self.preferences_dir, exist_ok=True)
            self._fs.write_text(self.preferences_file, json.dumps(data, indent=2))
            return True
        except OSError as e:
            logger.error(f"Error writing {self.preferences_file}: {e}")
            return False

    def _load_theme(self) -> str:
        data = self._read_json({})
        theme = data.get("theme") if isinstance(data, dict) else None
        if theme in Config.THEMES:
            return str(theme)
        if theme is not None:
            logger.warning(f"Ignoring unknown theme {theme!r}")
        return Config.DEFAULT_THEME

    def set_theme(self, theme: str) -> bool:
        """
        Change and persist the theme.

        Args:
            theme: "light" or "dark".

        Returns:
            True if the preference was written, False if only the
            in-memory value changed.

        Raises:
            ValueError: If theme is not one of Config.THEMES.
        """
        if theme not in Config.THEMES:
            raise ValueError(f"Unknown theme: {theme}")
        self._theme = theme
        logger.info(f"Theme set to {theme}")
        return self._write_json({"theme": theme})

    def toggle(self) -> str:
        """Switch light <-> dark, persist, and return the new theme."""
        self.set_theme("dark" if self._theme == "light" else "light")
        return self._theme
