"""
Stream resolution through yt-dlp.

The resolver asks yt-dlp for direct media URLs (``-g``) instead of
downloading, so ffmpeg can seek inside the remote streams and fetch only the
requested window.
"""

import json
import subprocess
from typing import List, Optional, Tuple

from ..config import Settings, get_settings
from ..exceptions import PipelineError
from ..logging_config import LoggerMixin
from ..models import FormatConstraint, StreamSource, VideoInfo
from ..utils.time_utils import format_duration
from ..utils.validation import extract_video_id


INFO_TIMEOUT_SECONDS = 30


class ResolutionError(PipelineError):
    """The resolution engine produced no usable URL for a required track."""

    def __init__(self, message: str, diagnostics: str = ""):
        super().__init__(message)
        self.diagnostics = diagnostics


class StreamResolver(LoggerMixin):
    """
    Resolves a source reference into short-lived direct media URLs.

    Every call spawns yt-dlp afresh. URLs are handed straight to the caller
    and never cached, because they expire within hours and are bound to the
    requesting client.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings if settings is not None else get_settings()

    def _base_command(self) -> List[str]:
        cmd = [self.settings.ytdlp_binary]
        if self.settings.cookies_file:
            cmd.extend(["--cookies", str(self.settings.cookies_file)])
        return cmd

    def build_url_command(self, source_url: str, selector: str) -> List[str]:
        """Build the yt-dlp argument vector that prints one direct URL."""
        return self._base_command() + ["--no-warnings", "-f", selector, "-g", source_url]

    def _resolve_track(self, source_url: str, selector: str) -> Tuple[Optional[str], str]:
        """
        Run yt-dlp for one track.

        Returns:
            The first URL line (None when the engine failed or printed nothing)
            and a bounded prefix of its stderr

        Raises:
            ResolutionError: If yt-dlp cannot be started or times out
        """
        cmd = self.build_url_command(source_url, selector)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.settings.resolver_timeout_seconds,
            )
        except FileNotFoundError as e:
            raise ResolutionError(f"yt-dlp is not available: {self.settings.ytdlp_binary}") from e
        except subprocess.TimeoutExpired as e:
            raise ResolutionError("Stream URL resolution timed out") from e

        diagnostics = (result.stderr or "")[:self.settings.diagnostic_max_chars]
        if result.returncode != 0:
            self.logger.warning("yt-dlp exited with an error", returncode=result.returncode, stderr=diagnostics)
            return None, diagnostics

        for line in (result.stdout or "").splitlines():
            if line.strip():
                return line.strip(), diagnostics
        return None, diagnostics

    def resolve(self, source_url: str, constraint: FormatConstraint) -> StreamSource:
        """
        Resolve direct URLs for the tracks ``constraint`` needs.

        The required track (video, or audio-only for mp3 output) must resolve.
        The companion audio track for video output is optional: if it is
        missing the result carries no audio URL and clipping falls back to a
        video-only encode.

        Args:
            source_url: Validated source page URL
            constraint: Output format and quality ceiling

        Returns:
            StreamSource for immediate use by the clip executor

        Raises:
            ResolutionError: If the required track cannot be resolved
        """
        video_url, diagnostics = self._resolve_track(source_url, constraint.primary_selector)
        if not video_url:
            raise ResolutionError("Could not resolve a stream URL for the requested format", diagnostics=diagnostics)

        audio_url = None
        if constraint.audio_selector:
            try:
                audio_url, _ = self._resolve_track(source_url, constraint.audio_selector)
            except ResolutionError as e:
                self.logger.warning("Audio stream lookup failed", error=str(e))
            if not audio_url:
                self.logger.warning("Audio stream not found, continuing with video only")

        self.logger.info(
            "Stream URLs obtained",
            format=constraint.output_format.value,
            quality=constraint.quality,
            has_audio=bool(audio_url),
        )
        return StreamSource(video_url=video_url, audio_url=audio_url)

    def fetch_info(self, source_url: str) -> VideoInfo:
        """
        Fetch preview metadata without downloading.

        Engine failures are not raised: a minimal record built from the video
        id is returned instead, so previews degrade rather than fail.
        """
        video_id = extract_video_id(source_url)
        fallback = VideoInfo(
            video_id=video_id,
            title="YouTube Video",
            duration_formatted="??:??",
            thumbnail=f"https://i.ytimg.com/vi/{video_id}/hqdefault.jpg" if video_id else None,
        )

        cmd = self._base_command() + ["--dump-json", "--no-download", "--no-warnings", source_url]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=INFO_TIMEOUT_SECONDS)
        except (FileNotFoundError, subprocess.TimeoutExpired) as e:
            self.logger.error("Error fetching video info", error=str(e), video_id=video_id)
            return fallback

        if result.returncode != 0:
            self.logger.error("Error fetching video info", returncode=result.returncode, video_id=video_id)
            return fallback

        try:
            info = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            self.logger.error("Unreadable video info", error=str(e), video_id=video_id)
            return fallback

        duration = info.get("duration") or 0
        return VideoInfo(
            video_id=video_id or info.get("id"),
            title=info.get("title") or "Unknown Title",
            duration=duration,
            duration_formatted=info.get("duration_string") or format_duration(duration),
            thumbnail=info.get("thumbnail") or fallback.thumbnail,
            uploader=info.get("uploader") or "Unknown",
            view_count=info.get("view_count") or 0,
        )
