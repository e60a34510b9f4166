"""
Duration arithmetic for Library Session Tracker.

PURPOSE: Convert time spans to whole hours/minutes/seconds and format them.
AI CONTEXT: Leaf module - used by the store, aggregation, charts and exports.

FORMATS:
- format_duration: compact display ("1h 30m", "45m", "10s")
- format_hhmmss: zero-padded "HH:MM:SS" for exports and live timers
- format_hms_long: session log display ("1h 5m 3s", "5m 3s")

DISPLAY POLICY (format_duration):
Hours appear only when non-zero, minutes appear when hours or minutes are
non-zero, and seconds appear only when both hours and minutes are zero.
A 45-minute visit therefore prints "45m", never "45m 0s".
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime

__all__ = [
    "Duration",
    "decompose",
    "to_seconds",
    "duration_between",
    "format_duration",
    "format_hhmmss",
    "format_hms_long",
]


@dataclass(frozen=True)
class Duration:
    """Whole-second time span split into hours, minutes and seconds."""

    hours: int = 0
    minutes: int = 0
    seconds: int = 0

    @property
    def total_seconds(self) -> int:
        """Total length of the span in seconds."""
        return to_seconds(self)

    def to_dict(self) -> dict[str, int]:
        """Serialize as {'hours', 'minutes', 'seconds'}."""
        return {"hours": self.hours, "minutes": self.minutes, "seconds": self.seconds}

    @classmethod
    def from_dict(cls, data: dict[str, int]) -> Duration:
        """Deserialize from a dict produced by to_dict(); missing parts are 0."""
        return cls(
            hours=int(data.get("hours", 0)),
            minutes=int(data.get("minutes", 0)),
            seconds=int(data.get("seconds", 0)),
        )


def _whole_seconds(total_seconds: float) -> int:
    # Averages arrive as floats; negative spans clamp to zero.
    if total_seconds < 0:
        return 0
    return int(math.floor(total_seconds))


def decompose(total_seconds: float) -> Duration:
    """
    Split a number of seconds into whole hours, minutes and seconds.

    Negative input is clamped to zero and fractional seconds are floored
    before the split, so the result is always a valid non-negative Duration.

    Args:
        total_seconds: Span length in seconds. May be a float.

    Returns:
        Duration with minutes and seconds in the range 0-59.

    Example:
        >>> decompose(3661)
        Duration(hours=1, minutes=1, seconds=1)
        >>> decompose(-5)
        Duration(hours=0, minutes=0, seconds=0)
    """
    whole = _whole_seconds(total_seconds)
    hours = whole // 3600
    minutes = (whole % 3600) // 60
    seconds = whole % 60
    return Duration(hours=hours, minutes=minutes, seconds=seconds)


def to_seconds(duration: Duration) -> int:
    """Inverse of decompose(): hours * 3600 + minutes * 60 + seconds."""
    return duration.hours * 3600 + duration.minutes * 60 + duration.seconds


def duration_between(time_in: datetime, time_out: datetime) -> Duration:
    """
    Compute the Duration of a visit from its timestamps.

    Fractional seconds are truncated and a negative span (time_out before
    time_in) produces a zero Duration.

    Args:
        time_in: Visit start.
        time_out: Visit end.

    Returns:
        Duration of time_out - time_in in whole seconds.

    Example:
        >>> from datetime import datetime
        >>> duration_between(datetime(2025, 1, 1, 10), datetime(2025, 1, 1, 11, 30))
        Duration(hours=1, minutes=30, seconds=0)
    """
    return decompose((time_out - time_in).total_seconds())


def format_duration(total_seconds: float) -> str:
    """
    Format seconds with the compact dashboard display policy.

    Business context: Used for leaderboard cells, chart axis labels and
    pie legends where space is limited. Seconds are noise once a visit
    passes a minute, so they are dropped.

    Args:
        total_seconds: Span length in seconds. Floats are floored,
            negatives clamp to zero.

    Returns:
        String such as "1h 1m", "45m", "10s" or "0s".

    Example:
        >>> format_duration(3661)
        '1h 1m'
        >>> format_duration(90)
        '1m'
        >>> format_duration(45)
        '45s'
    """
    duration = decompose(total_seconds)
    parts = ""
    if duration.hours > 0:
        parts += f"{duration.hours}h "
    if duration.hours > 0 or duration.minutes > 0:
        parts += f"{duration.minutes}m "
    if duration.hours == 0 and duration.minutes == 0:
        parts += f"{duration.seconds}s"
    return parts.strip() or "0s"


def format_hhmmss(total_seconds: float) -> str:
    """
    Format seconds as zero-padded HH:MM:SS.

    Example:
        >>> format_hhmmss(3725)
        '01:02:05'
    """
    duration = decompose(total_seconds)
    return f"{duration.hours:02d}:{duration.minutes:02d}:{duration.seconds:02d}"


def format_hms_long(duration: Duration) -> str:
    """Format a Duration for the session log: "1h 5m 3s", or "5m 3s" under an hour."""
    prefix = f"{duration.hours}h " if duration.hours > 0 else ""
    return f"{prefix}{duration.minutes}m {duration.seconds}s"
