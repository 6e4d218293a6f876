"""
Pytest configuration and fixtures for the YT-Trimmer tests.
"""

import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Generator, List, Optional

from yt_trimmer.config import Settings
from yt_trimmer.exceptions import EngineFailure
from yt_trimmer.models import (
    ClipRequest,
    FormatConstraint,
    Interval,
    OutputFormat,
    StreamSource,
    TaskMode,
    VideoInfo,
)
from yt_trimmer.services.concatenator import Concatenator
from yt_trimmer.services.pipeline import ClipPipeline
from yt_trimmer.services.task_registry import TaskRegistry


SOURCE_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "property: hypothesis property-based tests")
    config.addinivalue_line("markers", "integration: multi-component tests with faked engines")


class FakeResolver:
    """Stands in for StreamResolver; never spawns yt-dlp."""

    def __init__(self, stream: Optional[StreamSource] = None, error: Optional[Exception] = None):
        self.stream = stream or StreamSource(
            video_url="https://media.example/video.mp4",
            audio_url="https://media.example/audio.m4a",
        )
        self.error = error
        self.calls = []

    def resolve(self, source_url, constraint):
        self.calls.append((source_url, constraint))
        if self.error is not None:
            raise self.error
        return self.stream

    def fetch_info(self, source_url):
        return VideoInfo(
            video_id="dQw4w9WgXcQ",
            title="Test Video",
            duration=212,
            duration_formatted="3:32",
            thumbnail="https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg",
            uploader="Test Channel",
            view_count=42,
        )


class FakeExecutor:
    """
    Stands in for ClipExecutor.

    Writes ``payload`` to each output and reports one progress update. When
    ``fail_on`` names a 1-based call number, that call leaves a partial file
    behind and raises EngineFailure.
    """

    def __init__(self, payload: bytes = b"\x00" * 2048, fail_on: Optional[int] = None):
        self.payload = payload
        self.fail_on = fail_on
        self.calls = []

    def clip(self, stream, interval, constraint, output_path, band=(30.0, 90.0), on_progress=None):
        self.calls.append((interval, constraint, Path(output_path), band))
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        if self.fail_on == len(self.calls):
            Path(output_path).write_bytes(b"partial")
            raise EngineFailure("FFmpeg error (code 1)", returncode=1, diagnostics="boom")
        Path(output_path).write_bytes(self.payload)
        if on_progress is not None:
            on_progress(int(round((band[0] + band[1]) / 2)), 0.5)


class FakeConcatenator(Concatenator):
    """Real manifest and cleanup handling; the ffmpeg merge is replaced by a byte join."""

    def __init__(self, settings: Settings, fail: bool = False):
        super().__init__(settings)
        self.fail = fail
        self.manifests: List[str] = []

    def _merge(self, manifest_path: Path, output_path: Path) -> None:
        text = manifest_path.read_text(encoding="utf-8")
        self.manifests.append(text)
        if self.fail:
            raise EngineFailure("Failed to merge clip parts", returncode=1)
        paths = [line[len("file '"):-1] for line in text.splitlines() if line]
        output_path.write_bytes(b"".join(Path(p).read_bytes() for p in paths))


class RecordingRegistry(TaskRegistry):
    """TaskRegistry that keeps every recorded event per task."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.history = {}

    def publish(self, task_id, event, output_paths=None):
        recorded = super().publish(task_id, event, output_paths=output_paths)
        self.history.setdefault(task_id, []).append(recorded)
        return recorded


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_settings(temp_dir: Path) -> Settings:
    """Create test settings with temporary directories."""
    settings = Settings(
        output_dir=temp_dir / "output",
        logs_dir=temp_dir / "logs",
        ytdlp_binary="yt-dlp",
        ffmpeg_binary="ffmpeg",
        cookies_file=None,
        max_concurrent_tasks=2,
        log_level="DEBUG",
        log_to_file=False,
        auto_delete_after_download=True,
    )
    settings.output_dir.mkdir(parents=True, exist_ok=True)
    return settings


@pytest.fixture
def fake_resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def fake_concatenator(test_settings: Settings) -> FakeConcatenator:
    return FakeConcatenator(test_settings)


@pytest.fixture
def registry() -> RecordingRegistry:
    return RecordingRegistry(retention_seconds=300, file_retention_seconds=3600)


@pytest.fixture
def pipeline(test_settings, registry, fake_resolver, fake_executor, fake_concatenator) -> Generator[ClipPipeline, None, None]:
    """ClipPipeline wired to in-process fakes."""
    pipeline = ClipPipeline(
        test_settings,
        registry=registry,
        resolver=fake_resolver,
        executor=fake_executor,
        concatenator=fake_concatenator,
    )
    try:
        yield pipeline
    finally:
        pipeline.shutdown(wait=True)


def make_request(
    intervals,
    mode: TaskMode = TaskMode.SINGLE,
    base: str = "clip",
    output_format: OutputFormat = OutputFormat.MP4,
    quality: int = 720,
    concatenate: bool = False,
) -> ClipRequest:
    """Build a ClipRequest from ``[(start, end), ...]`` display strings."""
    return ClipRequest(
        source_url=SOURCE_URL,
        intervals=[Interval.parse(start, end) for start, end in intervals],
        base_filename=base,
        mode=mode,
        constraint=FormatConstraint(output_format=output_format, quality=quality),
        concatenate=concatenate,
    )


@pytest.fixture
def hypothesis_settings():
    """Configure Hypothesis settings for property tests."""
    from hypothesis import settings

    return settings(max_examples=100, deadline=None)


@pytest.fixture
def clip_request():
    """Factory fixture for ClipRequest objects."""
    return make_request
