"""
CLI entry point for Library Session Tracker.

PURPOSE: Command-line interface for launching the dashboard.
AI CONTEXT: Sessions live in the dashboard process's memory, so the
dashboard is the only command; there is nothing to report on offline.

USAGE:
    # Launch dashboard (default)
    python -m library_session_tracker

    # Or via CLI command (after install)
    library-tracker
    library-tracker dashboard --host 0.0.0.0 --port 8080
"""

from __future__ import annotations

import argparse
import logging
import sys
from functools import lru_cache

# Constants
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000


@lru_cache(maxsize=1)
def _get_logger() -> logging.Logger:
    """Get module logger, configuring logging on first use."""
    logging.basicConfig(level=logging.INFO)
    return logging.getLogger(__name__)


def _log(message: str, *, emoji: str = "") -> None:
    """Log message with optional emoji prefix for CLI output.

    Args:
        message: The message to log.
        emoji: Optional emoji prefix for visual CLI feedback.
    """
    prefix = f"{emoji} " if emoji else ""
    _get_logger().info(f"{prefix}{message}")


def run_dashboard(host: str = DEFAULT_HOST, port: int = DEFAULT_PORT) -> None:
    """
    Launch the web dashboard.

    Business context: Run once per opening day on the front-desk machine.
    Stopping the server discards the day's sessions, so staff export the
    log before closing.

    Args:
        host: Bind address.
        port: TCP port.

    Example:
        >>> # library-tracker dashboard --port 3000
        >>> run_dashboard(port=3000)
        🚀 Starting dashboard at http://127.0.0.1:3000
    """
    from .web import run_dashboard as start_web

    _log(f"Starting dashboard at http://{host}:{port}", emoji="🚀")
    _log("Sessions are kept in memory; export the log before stopping")
    _log("Press Ctrl+C to stop")
    start_web(host=host, port=port)


def main(argv: list[str] | None = None) -> int:
    """
    Main CLI entry point for Library Session Tracker.

    Parses command-line arguments and dispatches to the subcommand
    handler. With no subcommand the dashboard starts on the defaults.

    Subcommands:
    - dashboard [--host HOST] [--port PORT]: Launch web dashboard (default)

    Args:
        argv: Argument list. Default: sys.argv[1:].

    Returns:
        Exit code 0.

    Raises:
        SystemExit: On --help, --version or argument parsing errors.

    Example:
        >>> sys.exit(main(["dashboard", "--port", "8080"]))
    """
    from .__version__ import __version__

    parser = argparse.ArgumentParser(
        prog="library-tracker",
        description="Library Session Tracker - sign students in and out and analyze library visits",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    dashboard_parser = subparsers.add_parser(
        "dashboard",
        help="Launch web dashboard",
    )
    dashboard_parser.add_argument(
        "--host",
        default=DEFAULT_HOST,
        help=f"Bind address (default: {DEFAULT_HOST})",
    )
    dashboard_parser.add_argument(
        "--port",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port number (default: {DEFAULT_PORT})",
    )

    args = parser.parse_args(argv)

    if args.command == "dashboard":
        run_dashboard(host=args.host, port=args.port)
    else:
        run_dashboard()

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
