"""Tests for filesystem module."""

from __future__ import annotations

from pathlib import Path

import pytest
from conftest import MockFileSystem

from library_session_tracker.filesystem import RealFileSystem


class TestRealFileSystem:
    """Tests for RealFileSystem against a temporary directory."""

    def test_write_then_read(self, tmp_path: Path) -> None:
        """Verifies text written is read back unchanged."""
        fs = RealFileSystem()
        target = str(tmp_path / "prefs" / "preferences.json")

        fs.makedirs(str(tmp_path / "prefs"), exist_ok=True)
        fs.write_text(target, '{"theme": "dark"}')

        assert fs.exists(target)
        assert fs.read_text(target) == '{"theme": "dark"}'

    def test_read_missing(self, tmp_path: Path) -> None:
        """Verifies a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            RealFileSystem().read_text(str(tmp_path / "nope.json"))

    def test_makedirs_exist_ok_false(self, tmp_path: Path) -> None:
        """Verifies an existing directory raises without exist_ok."""
        with pytest.raises(OSError):
            RealFileSystem().makedirs(str(tmp_path))


class TestMockFileSystem:
    """Tests for the in-memory double used throughout the suite."""

    def test_write_needs_parent(self, mock_fs: MockFileSystem) -> None:
        """Verifies writes fail until the directory exists."""
        with pytest.raises(FileNotFoundError):
            mock_fs.write_text("/a/b.json", "{}")
        mock_fs.makedirs("/a")
        mock_fs.write_text("/a/b.json", "{}")
        assert mock_fs.get_file("/a/b.json") == "{}"

    def test_read_only(self, mock_fs: MockFileSystem) -> None:
        """Verifies read-only paths raise PermissionError."""
        mock_fs.set_file("/a/b.json", "{}")
        mock_fs.set_read_only("/a/b.json")
        with pytest.raises(PermissionError):
            mock_fs.write_text("/a/b.json", "[]")

    def test_makedirs_on_file(self, mock_fs: MockFileSystem) -> None:
        """Verifies a file path cannot become a directory."""
        mock_fs.set_file("/a/b.json", "{}")
        with pytest.raises(OSError):
            mock_fs.makedirs("/a/b.json")
