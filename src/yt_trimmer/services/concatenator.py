"""
Merging of per-interval clips with ffmpeg's concat demuxer.
"""

import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from ..config import Settings, get_settings
from ..exceptions import EngineFailure
from ..logging_config import LoggerMixin
from ..utils.file_utils import remove_files


def manifest_line(path: Path) -> str:
    """One concat-demuxer entry; single quotes are closed, escaped and reopened."""
    escaped = str(Path(path).resolve()).replace("\\", "/").replace("'", "'\\''")
    return f"file '{escaped}'"


class Concatenator(LoggerMixin):
    """Stream-copies ordered clips into one file and removes the inputs."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings if settings is not None else get_settings()

    def build_concat_command(self, manifest_path: Path, output_path: Path) -> List[str]:
        return [
            self.settings.ffmpeg_binary, "-hide_banner", "-nostdin",
            "-f", "concat", "-safe", "0",
            "-i", str(manifest_path),
            "-c", "copy",
            "-y", str(output_path),
        ]

    def concat(
        self,
        ordered_files: Sequence[Path],
        output_path: Path,
        manifest_path: Optional[Path] = None,
    ) -> None:
        """
        Merge ``ordered_files`` into ``output_path``.

        The manifest and every input file are deleted afterwards whether or
        not the merge succeeded; deletion problems are only logged.

        Raises:
            EngineFailure: If the merge itself fails
        """
        output_path = Path(output_path)
        inputs = [Path(f) for f in ordered_files]
        if manifest_path is None:
            manifest_path = output_path.parent / f"temp_{output_path.stem}_concat.txt"

        try:
            manifest_path.write_text("\n".join(manifest_line(f) for f in inputs) + "\n", encoding="utf-8")
            self._merge(manifest_path, output_path)
        finally:
            remove_files([manifest_path, *inputs])

        self.logger.info("Concat completed", parts=len(inputs), output=output_path.name)

    def _merge(self, manifest_path: Path, output_path: Path) -> None:
        cmd = self.build_concat_command(manifest_path, output_path)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.settings.engine_timeout_seconds,
            )
        except FileNotFoundError as e:
            raise EngineFailure(f"FFmpeg could not be started: {self.settings.ffmpeg_binary}") from e
        except subprocess.TimeoutExpired as e:
            raise EngineFailure("FFmpeg concat timed out") from e

        if result.returncode != 0:
            diagnostics = (result.stderr or "")[:self.settings.diagnostic_max_chars]
            self.logger.error("FFmpeg concat failed", returncode=result.returncode, diagnostics=diagnostics)
            raise EngineFailure("Failed to merge clip parts", returncode=result.returncode, diagnostics=diagnostics)
