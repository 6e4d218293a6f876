"""
Time utility functions for the clip pipeline.

Timestamps are carried as integer milliseconds so that interval arithmetic
stays exact for fractional inputs such as ``01:02.5``.
"""

import re
from typing import Union


MAX_TIMESTAMP_LENGTH = 20

# H:MM:SS[.frac] or MM:SS[.frac]; hours/minutes take one or two digits
_TIMESTAMP_PATTERNS = (
    re.compile(r"^(?P<hours>\d{1,2}):(?P<minutes>\d{2}):(?P<seconds>\d{2})(?:\.(?P<frac>\d+))?$"),
    re.compile(r"^(?P<minutes>\d{1,2}):(?P<seconds>\d{2})(?:\.(?P<frac>\d+))?$"),
)


class InvalidTimeFormat(ValueError):
    """Raised when a timestamp string does not match the accepted grammar."""


class InvalidInterval(ValueError):
    """Raised when a start/end pair does not describe a usable window."""


def parse_timestamp_ms(text: str) -> int:
    """
    Parse a display timestamp into integer milliseconds.

    Accepts ``H:MM:SS[.frac]`` and ``MM:SS[.frac]``. Fractions beyond
    millisecond precision are truncated.

    Args:
        text: Timestamp as typed by the caller

    Returns:
        Elapsed milliseconds from the start of the media

    Raises:
        InvalidTimeFormat: If the text is empty, too long or malformed
    """
    if not isinstance(text, str) or not text:
        raise InvalidTimeFormat("Timestamp must be a non-empty string")
    if len(text) > MAX_TIMESTAMP_LENGTH:
        raise InvalidTimeFormat(f"Timestamp too long: {text[:MAX_TIMESTAMP_LENGTH]}...")

    for pattern in _TIMESTAMP_PATTERNS:
        match = pattern.match(text)
        if not match:
            continue
        parts = match.groupdict()
        hours = int(parts.get("hours") or 0)
        minutes = int(parts["minutes"])
        seconds = int(parts["seconds"])
        if seconds >= 60 or (parts.get("hours") is not None and minutes >= 60):
            raise InvalidTimeFormat(f"Timestamp field out of range: {text}")
        frac = (parts.get("frac") or "")[:3].ljust(3, "0")
        return ((hours * 60 + minutes) * 60 + seconds) * 1000 + int(frac)

    raise InvalidTimeFormat(f"Invalid timestamp format: {text}")


def to_seconds(value: Union[str, int]) -> float:
    """
    Convert a timestamp string (or a millisecond count) to seconds.

    Whole-second inputs come back as whole floats, e.g. ``"00:01:30" -> 90.0``.
    """
    millis = value if isinstance(value, int) else parse_timestamp_ms(value)
    return millis / 1000


def format_seconds(millis: int) -> str:
    """
    Render milliseconds as an ffmpeg seconds argument.

    ``90000 -> "90"``, ``90500 -> "90.5"``, ``1234 -> "1.234"``.
    """
    if millis < 0:
        raise ValueError("Duration cannot be negative")
    whole, frac = divmod(millis, 1000)
    if not frac:
        return str(whole)
    return f"{whole}.{frac:03d}".rstrip("0")


def format_duration(seconds: float) -> str:
    """
    Format duration in seconds to HH:MM:SS format.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted duration string
    """
    if seconds < 0:
        raise ValueError("Duration cannot be negative")

    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"
