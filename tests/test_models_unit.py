"""
Unit tests for data models.
"""

import pytest

from yt_trimmer.models import (
    ClipRequest,
    FormatConstraint,
    Interval,
    OutputFormat,
    ProgressEvent,
    StreamSource,
    TaskMode,
    TaskState,
    Timestamp,
    VideoInfo,
)
from yt_trimmer.utils.time_utils import InvalidInterval, InvalidTimeFormat


@pytest.mark.unit
class TestInterval:
    """Unit tests for Interval."""

    def test_valid_interval(self):
        interval = Interval.parse("00:01:00", "00:02:30")

        assert interval.duration_millis == 90_000
        assert interval.duration_seconds == 90.0
        assert interval.start.argument == "60"
        assert interval.duration_argument == "90"
        assert str(interval) == "00:01:00-00:02:30"

    def test_fractional_duration_is_exact(self):
        interval = Interval.parse("01:02.5", "01:05.2")
        assert interval.duration_millis == 2_700
        assert interval.duration_argument == "2.7"

    def test_end_must_follow_start(self):
        with pytest.raises(InvalidInterval, match="must be greater"):
            Interval.parse("00:02:00", "00:01:00")

    def test_empty_interval_rejected(self):
        with pytest.raises(InvalidInterval):
            Interval.parse("00:01:00", "01:00")

    def test_malformed_timestamp_propagates(self):
        with pytest.raises(InvalidTimeFormat):
            Interval.parse("1 minute", "00:02:00")

    def test_max_duration_enforced(self):
        with pytest.raises(InvalidInterval, match="maximum duration of 600"):
            Interval.parse("00:00:00", "00:10:01", max_duration_seconds=600)

    def test_max_duration_boundary_accepted(self):
        interval = Interval.parse("00:00:00", "00:10:00", max_duration_seconds=600)
        assert interval.duration_seconds == 600.0

    def test_direct_construction_validates(self):
        with pytest.raises(InvalidInterval):
            Interval(Timestamp("x", -1), Timestamp("y", 10))


@pytest.mark.unit
class TestFormatConstraint:
    """Unit tests for FormatConstraint selectors."""

    def test_video_selectors(self):
        constraint = FormatConstraint(OutputFormat.MP4, 720)
        assert constraint.primary_selector == (
            "bestvideo[height<=720][ext=mp4]/bestvideo[height<=720]/best[height<=720]"
        )
        assert constraint.audio_selector == "bestaudio[ext=m4a]/bestaudio"

    def test_audio_only_selectors(self):
        constraint = FormatConstraint(OutputFormat.MP3, 1080)
        assert constraint.primary_selector == "bestaudio[ext=m4a]/bestaudio/best"
        assert constraint.audio_selector is None
        assert OutputFormat.MP3.is_audio_only

    def test_quality_must_be_positive(self):
        with pytest.raises(ValueError):
            FormatConstraint(OutputFormat.MP4, 0)


@pytest.mark.unit
class TestStreamSource:
    """Unit tests for StreamSource."""

    def test_has_audio(self):
        assert StreamSource("https://v").has_audio is False
        assert StreamSource("https://v", "https://a").has_audio is True

    def test_repr_hides_urls(self):
        text = repr(StreamSource("https://secret.example/v?sig=abc", "https://a"))
        assert "secret" not in text
        assert "has_audio=True" in text

    def test_empty_video_url_rejected(self):
        with pytest.raises(ValueError):
            StreamSource("")


@pytest.mark.unit
class TestClipRequest:
    """Unit tests for ClipRequest."""

    def test_single_mode_needs_one_interval(self, clip_request):
        with pytest.raises(ValueError, match="exactly one interval"):
            clip_request([("00:00", "00:10"), ("00:20", "00:30")], mode=TaskMode.SINGLE)

    def test_requires_intervals(self):
        with pytest.raises(ValueError, match="At least one interval"):
            ClipRequest(source_url="https://youtu.be/dQw4w9WgXcQ", intervals=[], base_filename="x")

    def test_merges_output(self, clip_request):
        many = [("00:00", "00:10"), ("00:20", "00:30")]
        assert clip_request(many, mode=TaskMode.MULTI, concatenate=True).merges_output
        assert not clip_request(many, mode=TaskMode.MULTI).merges_output
        assert not clip_request([("00:00", "00:10")], mode=TaskMode.MULTI, concatenate=True).merges_output

    def test_extension_follows_format(self, clip_request):
        request = clip_request([("00:00", "00:10")], output_format=OutputFormat.MP3)
        assert request.extension == "mp3"


@pytest.mark.unit
class TestProgressEvent:
    """Unit tests for ProgressEvent."""

    def test_to_dict_minimal(self):
        event = ProgressEvent(task_id="task_1", state=TaskState.TRIMMING, percent=40, message="Trimming")
        assert event.to_dict() == {
            "taskId": "task_1",
            "status": "trimming",
            "progress": 40,
            "message": "Trimming",
        }

    def test_to_dict_complete(self):
        event = ProgressEvent(
            task_id="multi_1",
            state=TaskState.COMPLETE,
            percent=100,
            message="Done",
            filename="a_part1.mp4",
            files=["a_part1.mp4", "a_part2.mp4"],
        )
        data = event.to_dict()
        assert data["filename"] == "a_part1.mp4"
        assert data["files"] == ["a_part1.mp4", "a_part2.mp4"]
        assert event.is_terminal

    def test_terminal_states(self):
        assert TaskState.COMPLETE.is_terminal
        assert TaskState.ERROR.is_terminal
        assert not TaskState.CLEANING.is_terminal


@pytest.mark.unit
def test_video_info_to_dict():
    info = VideoInfo(video_id="abc", title="T", duration=61, duration_formatted="1:01", view_count=3)
    data = info.to_dict()
    assert data["id"] == "abc"
    assert data["durationFormatted"] == "1:01"
    assert data["viewCount"] == 3
