"""
Unit tests for the concat-demuxer merge step.
"""

import subprocess
from pathlib import Path
from unittest.mock import Mock, patch

import pytest

from yt_trimmer.exceptions import EngineFailure
from yt_trimmer.services.concatenator import Concatenator, manifest_line


RUN = "yt_trimmer.services.concatenator.subprocess.run"


def _parts(directory: Path, count: int):
    paths = []
    for i in range(1, count + 1):
        path = directory / f"temp_task_part{i}.mp4"
        path.write_bytes(b"part%d" % i)
        paths.append(path)
    return paths


@pytest.mark.unit
class TestManifest:
    """Unit tests for manifest rendering."""

    def test_plain_path(self, temp_dir):
        path = temp_dir / "a.mp4"
        assert manifest_line(path) == f"file '{path.resolve()}'"

    def test_single_quote_escaped(self, temp_dir):
        line = manifest_line(temp_dir / "it's.mp4")
        assert line.endswith("it'\\''s.mp4'")


@pytest.mark.unit
class TestConcatenator:
    """Unit tests for Concatenator."""

    def test_build_concat_command(self, test_settings):
        cmd = Concatenator(test_settings).build_concat_command(Path("/t/list.txt"), Path("/t/out.mp4"))
        assert cmd == [
            "ffmpeg", "-hide_banner", "-nostdin",
            "-f", "concat", "-safe", "0",
            "-i", "/t/list.txt",
            "-c", "copy",
            "-y", "/t/out.mp4",
        ]

    @patch(RUN)
    def test_success_removes_inputs_and_manifest(self, mock_run, test_settings, temp_dir):
        parts = _parts(temp_dir, 3)
        manifest = temp_dir / "temp_task_concat.txt"
        seen = {}

        def _fake_run(cmd, **kwargs):
            seen["manifest"] = manifest.read_text(encoding="utf-8")
            Path(cmd[-1]).write_bytes(b"merged")
            return Mock(returncode=0, stderr="")

        mock_run.side_effect = _fake_run

        Concatenator(test_settings).concat(parts, temp_dir / "out.mp4", manifest_path=manifest)

        lines = seen["manifest"].splitlines()
        assert lines == [manifest_line(p) for p in parts]
        assert (temp_dir / "out.mp4").read_bytes() == b"merged"
        assert not manifest.exists()
        assert not any(p.exists() for p in parts)

    @patch(RUN)
    def test_failure_still_cleans_up(self, mock_run, test_settings, temp_dir):
        parts = _parts(temp_dir, 2)
        mock_run.return_value = Mock(returncode=1, stderr="Invalid data found when processing input")

        with pytest.raises(EngineFailure, match="Failed to merge clip parts") as exc_info:
            Concatenator(test_settings).concat(parts, temp_dir / "out.mp4")

        assert "Invalid data" in exc_info.value.diagnostics
        assert not any(p.exists() for p in parts)
        assert list(temp_dir.glob("*_concat.txt")) == []

    @patch(RUN)
    def test_timeout(self, mock_run, test_settings, temp_dir):
        parts = _parts(temp_dir, 2)
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="ffmpeg", timeout=1)

        with pytest.raises(EngineFailure, match="timed out"):
            Concatenator(test_settings).concat(parts, temp_dir / "out.mp4")
        assert not any(p.exists() for p in parts)
