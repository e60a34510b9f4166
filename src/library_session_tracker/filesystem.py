"""
FileSystem abstraction for Library Session Tracker.

PURPOSE: Injectable file access for the theme preference file.
AI CONTEXT: Sessions are in memory only; the preference file is the one
thing written to disk, and tests swap in an in-memory MockFileSystem.

DESIGN:
- Protocol defines the interface
- RealFileSystem uses actual os operations
- MockFileSystem in tests/conftest.py stores data in a dict

USAGE:
    store = ThemePreferenceStore(filesystem=RealFileSystem())
"""

from __future__ import annotations

import os
from typing import Protocol

__all__ = ["FileSystem", "RealFileSystem"]


class FileSystem(Protocol):
    """
    Protocol for the file operations the preference store needs.

    All paths are strings. Implementations are RealFileSystem for
    production and MockFileSystem for tests.
    """

    def exists(self, path: str) -> bool:
        """
        Check if path exists (file or directory).

        Returns:
            True if present, False otherwise. Never raises.
        """
        ...

    def makedirs(self, path: str, exist_ok: bool = False) -> None:
        """
        Create a directory and any missing parents, like `mkdir -p`.

        Raises:
            OSError: If the directory exists and exist_ok is False, or
                creation fails.
        """
        ...

    def read_text(self, path: str, encoding: str = "utf-8") -> str:
        """
        Read a whole file as text.

        Raises:
            FileNotFoundError: If the file does not exist.
            OSError: For other read failures.
        """
        ...

    def write_text(self, path: str, content: str, encoding: str = "utf-8") -> None:
        """
        Write text to a file, replacing any existing content.

        Business context: Called whenever the operator toggles the theme,
        so the choice survives a restart.

        Raises:
            OSError: If the parent directory is missing or not writable.
        """
        ...


class RealFileSystem:
    """
    Real file system implementation using os and built-in open().

    Example:
        >>> fs = RealFileSystem()
        >>> fs.exists(os.path.expanduser("~"))
        True
    """

    def exists(self, path: str) -> bool:  # pragma: no cover
        """Check path existence with os.path.exists()."""
        return os.path.exists(path)

    def makedirs(self, path: str, exist_ok: bool = False) -> None:  # pragma: no cover
        """Create directories with os.makedirs()."""
        os.makedirs(path, exist_ok=exist_ok)

    def read_text(self, path: str, encoding: str = "utf-8") -> str:  # pragma: no cover
        """Read file contents as text."""
        with open(path, encoding=encoding) as f:
            return f.read()

    def write_text(
        self, path: str, content: str, encoding: str = "utf-8"
    ) -> None:  # pragma: no cover
        """Write text content to file, overwriting."""
        with open(path, "w", encoding=encoding) as f:
            f.write(content)
