"""Tests for CLI module."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from library_session_tracker import __version__
from library_session_tracker.cli import DEFAULT_HOST, DEFAULT_PORT, main, run_dashboard


class TestCLIParsing:
    """Tests for CLI argument parsing."""

    def test_no_command_starts_dashboard(self) -> None:
        """Verifies a bare invocation launches the dashboard on the defaults.

        Business context:
        Front-desk staff start the tracker with a single command; no
        subcommand should be needed.

        Arrangement:
        Patch run_dashboard so no server starts.

        Action:
        Call main() with an empty argument list.

        Assertion Strategy:
        Exit code 0 and one call with default host and port.
        """
        with patch("library_session_tracker.cli.run_dashboard") as mock_run:
            assert main([]) == 0
        mock_run.assert_called_once_with()

    def test_dashboard_options(self) -> None:
        """Verifies --host and --port reach the server."""
        with patch("library_session_tracker.cli.run_dashboard") as mock_run:
            assert main(["dashboard", "--host", "0.0.0.0", "--port", "8080"]) == 0
        mock_run.assert_called_once_with(host="0.0.0.0", port=8080)

    def test_dashboard_defaults(self) -> None:
        """Verifies the dashboard subcommand defaults."""
        with patch("library_session_tracker.cli.run_dashboard") as mock_run:
            main(["dashboard"])
        mock_run.assert_called_once_with(host=DEFAULT_HOST, port=DEFAULT_PORT)

    def test_version_flag(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Verifies --version prints the version and exits 0."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])
        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out

    def test_invalid_port(self) -> None:
        """Verifies a non-numeric port is an argument error."""
        with pytest.raises(SystemExit) as exc_info:
            main(["dashboard", "--port", "abc"])
        assert exc_info.value.code == 2


class TestRunDashboard:
    """Tests for cli.run_dashboard."""

    def test_delegates_to_web(self) -> None:
        """Verifies the web runner receives host and port."""
        with patch("library_session_tracker.web.run_dashboard") as mock_web:
            run_dashboard(host="0.0.0.0", port=3000)
        mock_web.assert_called_once_with(host="0.0.0.0", port=3000)
