"""
Package entry point for python -m execution.

USAGE:
    python -m library_session_tracker            # Launch web dashboard
    python -m library_session_tracker dashboard  # Launch web dashboard
"""

import sys

from library_session_tracker.cli import main

if __name__ == "__main__":
    sys.exit(main())
