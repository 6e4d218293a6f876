"""
Core data models for the clip pipeline.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Dict, Any

from .utils.time_utils import InvalidInterval, parse_timestamp_ms, format_seconds


class TaskMode(Enum):
    """Whether a task clips one interval or several."""
    SINGLE = "single"
    MULTI = "multi"


class TaskState(Enum):
    """Enumeration of task states, in pipeline order."""
    STARTING = "starting"
    DOWNLOADING = "downloading"
    TRIMMING = "trimming"
    CLEANING = "cleaning"
    COMPLETE = "complete"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.COMPLETE, TaskState.ERROR)


class OutputFormat(Enum):
    """Container produced for each clip."""
    MP4 = "mp4"
    MP3 = "mp3"

    @property
    def extension(self) -> str:
        return self.value

    @property
    def is_audio_only(self) -> bool:
        return self is OutputFormat.MP3


@dataclass(frozen=True)
class Timestamp:
    """A position in the source media, kept with the text it was parsed from."""
    text: str
    millis: int

    @classmethod
    def parse(cls, text: str) -> 'Timestamp':
        return cls(text=text, millis=parse_timestamp_ms(text))

    @property
    def seconds(self) -> float:
        return self.millis / 1000

    @property
    def argument(self) -> str:
        """Seconds rendering passed to ffmpeg ``-ss``."""
        return format_seconds(self.millis)


@dataclass(frozen=True)
class Interval:
    """A validated ``[start, end)`` window within the source media."""
    start: Timestamp
    end: Timestamp

    def __post_init__(self):
        """Validate data after initialization."""
        if self.start.millis < 0 or self.end.millis < 0:
            raise InvalidInterval("Timestamps cannot be negative")
        if self.end.millis <= self.start.millis:
            raise InvalidInterval(
                f"End time ({self.end.text}) must be greater than start time ({self.start.text})"
            )

    @classmethod
    def parse(cls, start: str, end: str, max_duration_seconds: Optional[int] = None) -> 'Interval':
        """
        Build an interval from display strings.

        Args:
            start: Start timestamp, e.g. ``"00:01:00"``
            end: End timestamp, e.g. ``"00:02:30"``
            max_duration_seconds: Longest accepted window, if any

        Raises:
            InvalidTimeFormat: If either timestamp is malformed
            InvalidInterval: If the window is empty, reversed or too long
        """
        interval = cls(Timestamp.parse(start), Timestamp.parse(end))
        if max_duration_seconds is not None and interval.duration_millis > max_duration_seconds * 1000:
            raise InvalidInterval(
                f"Interval {start}-{end} exceeds the maximum duration of {max_duration_seconds} seconds"
            )
        return interval

    @property
    def duration_millis(self) -> int:
        return self.end.millis - self.start.millis

    @property
    def duration_seconds(self) -> float:
        return self.duration_millis / 1000

    @property
    def duration_argument(self) -> str:
        """Seconds rendering passed to ffmpeg ``-t``."""
        return format_seconds(self.duration_millis)

    def __str__(self) -> str:
        return f"{self.start.text}-{self.end.text}"


@dataclass(frozen=True)
class FormatConstraint:
    """Output format plus the quality ceiling used to pick source tracks."""
    output_format: OutputFormat = OutputFormat.MP4
    quality: int = 720

    def __post_init__(self):
        if self.quality <= 0:
            raise ValueError("Quality ceiling must be positive")

    @property
    def primary_selector(self) -> str:
        """yt-dlp selector for the required track."""
        if self.output_format.is_audio_only:
            return "bestaudio[ext=m4a]/bestaudio/best"
        q = self.quality
        return f"bestvideo[height<={q}][ext=mp4]/bestvideo[height<={q}]/best[height<={q}]"

    @property
    def audio_selector(self) -> Optional[str]:
        """yt-dlp selector for the companion audio track, if one is wanted."""
        if self.output_format.is_audio_only:
            return None
        return "bestaudio[ext=m4a]/bestaudio"


@dataclass(frozen=True)
class StreamSource:
    """
    Short-lived direct media URLs for one source.

    ``video_url`` is the required carrier track (the audio-only track in mp3
    mode). These URLs expire; they are never stored beyond the task that
    resolved them.
    """
    video_url: str
    audio_url: Optional[str] = None

    def __post_init__(self):
        if not self.video_url:
            raise ValueError("Video URL cannot be empty")

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_url)

    def __repr__(self) -> str:
        return f"StreamSource(video_url=<redacted>, has_audio={self.has_audio})"


@dataclass(frozen=True)
class ClipRequest:
    """A validated, policy-approved clip request."""
    source_url: str
    intervals: List[Interval]
    base_filename: str
    mode: TaskMode = TaskMode.SINGLE
    constraint: FormatConstraint = field(default_factory=FormatConstraint)
    concatenate: bool = False

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.source_url:
            raise ValueError("Source URL cannot be empty")
        if not self.intervals:
            raise ValueError("At least one interval is required")
        if not self.base_filename:
            raise ValueError("Base filename cannot be empty")
        if self.mode is TaskMode.SINGLE and len(self.intervals) != 1:
            raise ValueError("Single mode takes exactly one interval")

    @property
    def extension(self) -> str:
        return self.constraint.output_format.extension

    @property
    def merges_output(self) -> bool:
        return self.mode is TaskMode.MULTI and self.concatenate and len(self.intervals) > 1


@dataclass(frozen=True)
class ProgressEvent:
    """One state/percentage/message update correlated to a task."""
    task_id: str
    state: TaskState
    percent: int
    message: str = ""
    filename: Optional[str] = None
    files: Optional[List[str]] = None
    created_at: float = field(default_factory=time.time)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        data: Dict[str, Any] = {
            "taskId": self.task_id,
            "status": self.state.value,
            "progress": self.percent,
            "message": self.message,
        }
        if self.filename is not None:
            data["filename"] = self.filename
        if self.files is not None:
            data["files"] = list(self.files)
        return data


@dataclass
class VideoInfo:
    """Preview metadata for a source video."""
    video_id: Optional[str]
    title: str = "Unknown Title"
    duration: float = 0
    duration_formatted: str = "00:00"
    thumbnail: Optional[str] = None
    uploader: str = "Unknown"
    view_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.video_id,
            "title": self.title,
            "duration": self.duration,
            "durationFormatted": self.duration_formatted,
            "thumbnail": self.thumbnail,
            "uploader": self.uploader,
            "viewCount": self.view_count,
        }
