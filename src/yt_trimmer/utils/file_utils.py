"""
File utility functions for the clip pipeline.
"""

import re
import time
from pathlib import Path
from typing import Iterable, List, Union

from ..logging_config import get_logger

logger = get_logger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def ensure_directory(path: Union[str, Path]) -> Path:
    """
    Ensure a directory exists, creating it if necessary.

    Args:
        path: Directory path to create

    Returns:
        Path object for the directory
    """
    path = Path(path)
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Directory ensured", path=str(path))
    return path


def get_file_size(file_path: Union[str, Path]) -> int:
    """
    Get file size in bytes.

    Args:
        file_path: Path to the file

    Returns:
        File size in bytes
    """
    file_path = Path(file_path)

    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    size = file_path.stat().st_size
    logger.debug("File size retrieved", file=str(file_path), size_bytes=size)

    return size


def safe_filename(filename: str, default: str = "video-part", max_length: int = 50) -> str:
    """
    Reduce a caller-supplied name to ``[A-Za-z0-9_-]``.

    Every other character becomes an underscore; the result is cut to
    ``max_length`` and falls back to ``default`` when nothing is left.
    """
    if not filename or not isinstance(filename, str):
        return default
    return _UNSAFE_FILENAME_CHARS.sub("_", filename[:100])[:max_length] or default


def remove_files(paths: Iterable[Union[str, Path]]) -> List[Path]:
    """
    Best-effort deletion of files.

    Missing files are skipped silently; deletion errors are logged and the
    remaining paths are still attempted.

    Returns:
        The paths that were actually removed
    """
    removed = []
    for path in paths:
        path = Path(path)
        try:
            if path.exists():
                path.unlink()
                removed.append(path)
        except OSError as e:
            logger.warning("Could not delete file", file=str(path), error=str(e))
    if removed:
        logger.debug("Files removed", count=len(removed))
    return removed


def cleanup_stale_files(
    directory: Union[str, Path],
    max_age_seconds: float,
    prefix: str = "temp_",
    suffixes: tuple = (".mp4", ".mp3", ".txt"),
) -> List[Path]:
    """
    Delete leftover intermediates older than ``max_age_seconds``.

    Only files whose name starts with ``prefix`` and ends with one of
    ``suffixes`` are considered.
    """
    directory = Path(directory)
    if not directory.exists():
        return []

    cutoff = time.time() - max_age_seconds
    stale = []
    for item in directory.iterdir():
        if not item.is_file() or not item.name.startswith(prefix) or item.suffix not in suffixes:
            continue
        try:
            if item.stat().st_mtime < cutoff:
                stale.append(item)
        except OSError:
            continue

    removed = remove_files(stale)
    for path in removed:
        logger.info("Cleaned up old temp file", file=path.name)
    return removed
