"""
YT-Trimmer

Clips time windows out of remote videos by resolving direct stream URLs with
yt-dlp and cutting them with ffmpeg, without downloading the full source.
"""

__version__ = "2.1.0"

from .models import (
    TaskMode,
    TaskState,
    OutputFormat,
    Timestamp,
    Interval,
    FormatConstraint,
    StreamSource,
    ClipRequest,
    ProgressEvent,
    VideoInfo,
)

__all__ = [
    "TaskMode",
    "TaskState",
    "OutputFormat",
    "Timestamp",
    "Interval",
    "FormatConstraint",
    "StreamSource",
    "ClipRequest",
    "ProgressEvent",
    "VideoInfo",
]
