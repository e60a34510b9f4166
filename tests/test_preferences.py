"""Tests for preferences module."""

from __future__ import annotations

import json

import pytest
from conftest import MockFileSystem

from library_session_tracker.config import Config
from library_session_tracker.preferences import ThemePreferenceStore

PREFS_DIR = "/home/librarian/.library_tracker"
PREFS_FILE = f"{PREFS_DIR}/preferences.json"


class TestLoad:
    """Tests for reading the stored theme."""

    def test_default_when_missing(self, mock_fs: MockFileSystem) -> None:
        """Verifies a fresh install starts light."""
        assert ThemePreferenceStore(PREFS_DIR, filesystem=mock_fs).theme == "light"

    def test_reads_stored_theme(self, mock_fs: MockFileSystem) -> None:
        """Verifies a saved dark theme is restored."""
        mock_fs.set_file(PREFS_FILE, '{"theme": "dark"}')
        assert ThemePreferenceStore(PREFS_DIR, filesystem=mock_fs).theme == "dark"

    @pytest.mark.parametrize("content", ["not json", '["dark"]', '{"theme": "sepia"}'])
    def test_bad_content_falls_back(self, mock_fs: MockFileSystem, content: str) -> None:
        """Verifies corrupt or unknown values fall back to the default theme."""
        mock_fs.set_file(PREFS_FILE, content)
        assert ThemePreferenceStore(PREFS_DIR, filesystem=mock_fs).theme == Config.DEFAULT_THEME

    def test_directory_from_config(self, mock_fs: MockFileSystem) -> None:
        """Verifies the default directory honours the Config override."""
        Config.set_test_overrides(home="/custom")
        prefs = ThemePreferenceStore(filesystem=mock_fs)
        assert prefs.preferences_file == "/custom/preferences.json"


class TestToggle:
    """Tests for toggle() and set_theme()."""

    def test_toggle_persists(self, mock_fs: MockFileSystem) -> None:
        """Verifies toggling writes the new theme, creating the directory.

        Business context:
        A librarian who prefers the dark dashboard should not have to
        switch it again after a restart.
        """
        prefs = ThemePreferenceStore(PREFS_DIR, filesystem=mock_fs)

        assert prefs.toggle() == "dark"

        assert json.loads(mock_fs.get_file(PREFS_FILE) or "{}") == {"theme": "dark"}
        assert ThemePreferenceStore(PREFS_DIR, filesystem=mock_fs).theme == "dark"

    def test_toggle_twice_returns_to_light(self, mock_fs: MockFileSystem) -> None:
        """Verifies toggle flips both ways."""
        prefs = ThemePreferenceStore(PREFS_DIR, filesystem=mock_fs)
        prefs.toggle()
        assert prefs.toggle() == "light"

    def test_write_failure_keeps_memory_value(self, mock_fs: MockFileSystem) -> None:
        """Verifies a read-only file still switches the theme for this run."""
        mock_fs.set_file(PREFS_FILE, '{"theme": "light"}')
        mock_fs.set_read_only(PREFS_FILE)
        prefs = ThemePreferenceStore(PREFS_DIR, filesystem=mock_fs)

        assert prefs.set_theme("dark") is False
        assert prefs.theme == "dark"

    def test_unknown_theme_rejected(self, mock_fs: MockFileSystem) -> None:
        """Verifies set_theme only accepts known themes."""
        prefs = ThemePreferenceStore(PREFS_DIR, filesystem=mock_fs)
        with pytest.raises(ValueError):
            prefs.set_theme("sepia")
        assert prefs.theme == "light"
