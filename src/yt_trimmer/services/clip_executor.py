"""
Per-interval clipping through ffmpeg.

Each interval is one ffmpeg run against the resolved stream URLs. Both inputs
are seeked with ``-ss`` before ``-i`` so ffmpeg jumps straight to the window
over HTTP range requests instead of decoding from the start.
"""

import subprocess
import threading
from pathlib import Path
from typing import Callable, List, Optional

from ..config import Settings, get_settings
from ..exceptions import EngineFailure
from ..logging_config import LoggerMixin
from ..models import FormatConstraint, Interval, StreamSource
from ..utils.progress import SINGLE_CLIP_BAND, ProgressTracker, extract_elapsed_seconds


# (task percent, fraction of this clip done)
ClipProgressCallback = Callable[[int, float], None]


class ClipExecutor(LoggerMixin):
    """Runs ffmpeg once per interval and reports its progress."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings if settings is not None else get_settings()

    def build_clip_command(
        self,
        stream: StreamSource,
        interval: Interval,
        constraint: FormatConstraint,
        output_path: Path,
    ) -> List[str]:
        """
        Build the ffmpeg argument vector for one interval.

        - mp3: single input, video dropped, LAME VBR quality 2
        - mp4 with audio: two inputs each seeked to the start, video copied,
          audio re-encoded to AAC
        - mp4 without audio: single input, video copied, no audio mapping
        """
        start = interval.start.argument
        duration = interval.duration_argument
        cmd = [self.settings.ffmpeg_binary, "-hide_banner", "-nostdin"]

        if constraint.output_format.is_audio_only:
            cmd += ["-ss", start, "-i", stream.video_url, "-t", duration,
                    "-vn", "-c:a", "libmp3lame", "-q:a", "2"]
        elif stream.has_audio:
            cmd += ["-ss", start, "-i", stream.video_url,
                    "-ss", start, "-i", stream.audio_url,
                    "-t", duration,
                    "-map", "0:v:0", "-map", "1:a:0",
                    "-c:v", "copy", "-c:a", "aac",
                    "-avoid_negative_ts", "make_zero"]
        else:
            cmd += ["-ss", start, "-i", stream.video_url, "-t", duration,
                    "-map", "0:v:0", "-c:v", "copy",
                    "-avoid_negative_ts", "make_zero"]

        cmd += ["-y", str(output_path)]
        return cmd

    def clip(
        self,
        stream: StreamSource,
        interval: Interval,
        constraint: FormatConstraint,
        output_path: Path,
        band: tuple = SINGLE_CLIP_BAND,
        on_progress: Optional[ClipProgressCallback] = None,
    ) -> None:
        """
        Clip one interval into ``output_path``.

        Args:
            stream: Freshly resolved stream URLs
            interval: Window to cut
            constraint: Output format
            output_path: File to write; overwritten if present
            band: Task percent range this clip's progress is mapped into
            on_progress: Called with coalesced progress updates

        Raises:
            EngineFailure: If ffmpeg cannot start, times out or exits non-zero
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = self.build_clip_command(stream, interval, constraint, output_path)
        tracker = ProgressTracker(
            duration_seconds=interval.duration_seconds,
            band_start=band[0],
            band_end=band[1],
            threshold=self.settings.progress_threshold,
        )

        self.logger.debug(
            "Starting ffmpeg clip",
            interval=str(interval),
            output=output_path.name,
            has_audio=stream.has_audio,
        )
        returncode, diagnostics, timed_out = self._run(cmd, tracker, on_progress)
        # ffmpeg echoes its inputs; signed media URLs stay out of logs and errors
        for url, label in ((stream.video_url, "<video-url>"), (stream.audio_url, "<audio-url>")):
            if url:
                diagnostics = diagnostics.replace(url, label)

        if timed_out:
            raise EngineFailure(
                f"FFmpeg timed out after {self.settings.engine_timeout_seconds}s",
                returncode=returncode,
                diagnostics=diagnostics,
            )
        if returncode != 0:
            self.logger.error("FFmpeg failed", returncode=returncode, diagnostics=diagnostics)
            raise EngineFailure(f"FFmpeg error (code {returncode})", returncode=returncode, diagnostics=diagnostics)

        self.logger.info("Clip written", interval=str(interval), output=output_path.name)

    def _run(self, cmd: List[str], tracker: ProgressTracker, on_progress: Optional[ClipProgressCallback]):
        limit = self.settings.diagnostic_max_chars
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise EngineFailure(f"FFmpeg could not be started: {e.strerror or e}") from e

        timed_out = threading.Event()

        def _kill():
            timed_out.set()
            process.kill()

        watchdog = threading.Timer(self.settings.engine_timeout_seconds, _kill)
        watchdog.daemon = True
        watchdog.start()

        diagnostics = ""
        try:
            # text mode splits on the bare \r ffmpeg uses for status lines
            for line in process.stderr:
                if len(diagnostics) < limit:
                    diagnostics = (diagnostics + line)[:limit]
                elapsed = extract_elapsed_seconds(line)
                if elapsed is None:
                    continue
                percent = tracker.update(elapsed)
                if percent is not None and on_progress is not None:
                    on_progress(percent, tracker.fraction(elapsed))
            returncode = process.wait()
        finally:
            watchdog.cancel()
            if process.poll() is None:
                process.kill()
                process.wait()
            if process.stderr is not None:
                process.stderr.close()

        return returncode, diagnostics, timed_out.is_set()
