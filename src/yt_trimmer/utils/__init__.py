"""
Utility modules for the clip pipeline.
"""

from .file_utils import (
    ensure_directory,
    get_file_size,
    safe_filename,
    remove_files,
    cleanup_stale_files,
)

from .time_utils import (
    InvalidTimeFormat,
    InvalidInterval,
    parse_timestamp_ms,
    to_seconds,
    format_seconds,
    format_duration,
)

from .progress import (
    extract_elapsed_seconds,
    interval_band,
    ProgressTracker,
)

from .validation import (
    sanitize_youtube_url,
    extract_video_id,
    choose_option,
)

__all__ = [
    "ensure_directory",
    "get_file_size",
    "safe_filename",
    "remove_files",
    "cleanup_stale_files",
    "InvalidTimeFormat",
    "InvalidInterval",
    "parse_timestamp_ms",
    "to_seconds",
    "format_seconds",
    "format_duration",
    "extract_elapsed_seconds",
    "interval_band",
    "ProgressTracker",
    "sanitize_youtube_url",
    "extract_video_id",
    "choose_option",
]
