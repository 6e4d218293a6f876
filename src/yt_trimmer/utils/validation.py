"""
Validation utility functions for incoming clip requests.
"""

import re
from typing import Iterable, Optional

from ..logging_config import get_logger

logger = get_logger(__name__)

MAX_URL_LENGTH = 200

_YOUTUBE_PATTERNS = (
    re.compile(r"^https?://(www\.)?youtube\.com/watch\?v=[\w-]{11}(&.*)?$"),
    re.compile(r"^https?://youtu\.be/[\w-]{11}(\?.*)?$"),
    re.compile(r"^https?://(www\.)?youtube\.com/shorts/[\w-]{11}(\?.*)?$"),
    re.compile(r"^https?://(www\.)?youtube\.com/embed/[\w-]{11}(\?.*)?$"),
)
_VIDEO_ID_RE = re.compile(
    r"(?:youtube\.com/watch\?v=|youtu\.be/|youtube\.com/shorts/|youtube\.com/embed/)([a-zA-Z0-9_-]{11})"
)
_SHELL_METACHARACTERS = re.compile(r"[;|`$(){}\[\]<>\\]")


def sanitize_youtube_url(url: str) -> Optional[str]:
    """
    Return the trimmed URL if it is a single-video YouTube link, else None.

    Watch, youtu.be, shorts and embed forms are accepted. URLs longer than
    ``MAX_URL_LENGTH`` or containing shell metacharacters are rejected even
    though engines are never run through a shell.
    """
    if not url or not isinstance(url, str) or len(url) > MAX_URL_LENGTH:
        return None

    candidate = url.strip()
    if not any(pattern.match(candidate) for pattern in _YOUTUBE_PATTERNS):
        logger.debug("YouTube URL validation", valid=False)
        return None
    if _SHELL_METACHARACTERS.search(candidate):
        logger.debug("YouTube URL validation", valid=False, reason="metacharacters")
        return None
    return candidate


def extract_video_id(url: str) -> Optional[str]:
    """Extract the 11-character video id from a YouTube URL."""
    match = _VIDEO_ID_RE.search(url or "")
    return match.group(1) if match else None


def choose_option(value: Optional[str], allowed: Iterable[str], default: str) -> str:
    """Return ``value`` when it is one of ``allowed``, else ``default``."""
    return value if value in set(allowed) else default
