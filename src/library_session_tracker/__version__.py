"""Version information for library-session-tracker."""

__version__ = "1.0.0"
__version_date__ = "2026-10-19"

__title__ = "library_session_tracker"
__description__ = "Library visit tracking with session analytics, charts and exports"
__url__ = "https://github.com/mgrandau/library-session-tracker"

__author__ = "Mark Grandau"

__license__ = "MIT"
__copyright__ = "Copyright 2025 Mark Grandau"

__all__ = [
    "__version__",
    "__version_date__",
    "__title__",
    "__description__",
    "__url__",
    "__author__",
    "__license__",
    "__copyright__",
]
