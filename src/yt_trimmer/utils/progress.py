"""
Progress sampling for transcoder diagnostics.

ffmpeg reports progress on stderr as status lines such as::

    frame=  240 fps=0.0 q=-1.0 size=    1024kB time=00:00:08.00 bitrate=1048.6kbits/s

The only field read is the elapsed-time marker ``time=HH:MM:SS[.ff]``.
Everything else on the line is ignored, so switching to ffmpeg's structured
``-progress`` output later only means replacing ``extract_elapsed_seconds``.
"""

import re
from dataclasses import dataclass
from typing import Optional


_ELAPSED_RE = re.compile(r"time=(\d{2,}):(\d{2}):(\d{2})(?:\.(\d+))?")

SINGLE_CLIP_BAND = (30.0, 90.0)
MULTI_CLIP_BAND = (10.0, 90.0)


def extract_elapsed_seconds(line: str) -> Optional[float]:
    """Return the elapsed seconds in an ffmpeg status line, or None."""
    match = _ELAPSED_RE.search(line)
    if not match:
        return None
    hours, minutes, seconds, frac = match.groups()
    elapsed = int(hours) * 3600 + int(minutes) * 60 + int(seconds)
    if frac:
        elapsed += int(frac) / (10 ** len(frac))
    return float(elapsed)


def interval_band(index: int, total: int) -> tuple:
    """
    Percent band owned by interval ``index`` of ``total``.

    Intervals split the multi-clip band evenly in submission order, so a
    multi-clip task with one interval still reports within that band.
    """
    if total <= 0 or not 0 <= index < total:
        raise ValueError(f"Interval index {index} out of range for {total} intervals")
    low, high = MULTI_CLIP_BAND
    step = (high - low) / total
    return (low + step * index, low + step * (index + 1))


@dataclass
class ProgressTracker:
    """
    Maps elapsed engine time onto a percent band and coalesces updates.

    ``update`` returns a new whole percentage only when the mapped value has
    moved more than ``threshold`` past the last one it returned.
    """

    duration_seconds: float
    band_start: float
    band_end: float
    threshold: float = 5.0

    def __post_init__(self):
        if self.duration_seconds <= 0:
            raise ValueError("Duration must be positive")
        if self.band_end < self.band_start:
            raise ValueError("Band end must not precede band start")
        self.last_emitted = self.band_start

    def fraction(self, elapsed_seconds: float) -> float:
        return max(0.0, min(elapsed_seconds / self.duration_seconds, 1.0))

    def map(self, elapsed_seconds: float) -> float:
        span = self.band_end - self.band_start
        return self.band_start + self.fraction(elapsed_seconds) * span

    def update(self, elapsed_seconds: float) -> Optional[int]:
        mapped = self.map(elapsed_seconds)
        if mapped > self.last_emitted + self.threshold:
            self.last_emitted = mapped
            return int(round(mapped))
        return None
