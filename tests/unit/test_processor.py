"""
Unit tests for the media tool adapter.

subprocess.run is replaced with a recorder, so these tests check the
exact command lines and the error mapping without ffmpeg installed.
"""

import subprocess
from pathlib import Path

import pytest

from src.core.dataset.models import FrameDescriptor
from src.infrastructure.video import processor
from src.infrastructure.video.processor import (
    ExtractionError,
    MediaShellAdapter,
    ProbeError,
    RegionExtractionError,
    VideoDimensions,
    format_seek_time,
    parse_dimensions_output,
    parse_duration_output,
)


class FakeRun:
    """Stands in for subprocess.run, returning queued results in order."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    def __call__(self, cmd, **kwargs):
        self.calls.append(cmd)
        result = self.results.pop(0) if self.results else (0, "")
        if isinstance(result, BaseException):
            raise result
        returncode, stdout = result
        return subprocess.CompletedProcess(
            cmd, returncode, stdout=stdout, stderr="boom" if returncode else ""
        )


@pytest.fixture
def fake_run(monkeypatch):
    def install(*results):
        fake = FakeRun(*results)
        monkeypatch.setattr(processor.subprocess, "run", fake)
        return fake
    return install


# ---------------------------------------------------------------------------
# Parsing Tests
# ---------------------------------------------------------------------------

class TestParseDuration:
    """mediainfo reports duration as integer milliseconds."""

    def test_milliseconds_become_seconds(self):
        assert parse_duration_output("2500") == 2.5

    def test_zero_duration(self):
        assert parse_duration_output("0") == 0.0

    def test_surrounding_whitespace_is_ignored(self):
        assert parse_duration_output("  61000\n") == 61.0

    @pytest.mark.parametrize("output", ["", "abc", "2500.5", "-100"])
    def test_rejects_unparsable_output(self, output):
        with pytest.raises(ProbeError):
            parse_duration_output(output)


class TestParseDimensions:
    """ffprobe reports WIDTHxHEIGHT."""

    def test_width_and_height(self):
        assert parse_dimensions_output("1920x1080\n") == (1920, 1080)

    def test_returns_named_fields(self):
        dimensions = parse_dimensions_output("640x480")
        assert dimensions.width == 640
        assert dimensions.height == 480

    @pytest.mark.parametrize("output", ["", "1920", "1920x", "axb", "1920x1080x"])
    def test_rejects_malformed_output(self, output):
        with pytest.raises(ProbeError):
            parse_dimensions_output(output)


class TestFormatSeekTime:
    """-ss values use plain fixed-point with the fewest digits."""

    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0"), (0.0, "0"), (2.5, "2.5"), (3 * 0.1, "0.3"), (120.0, "120"), (1e-05, "0.00001")],
    )
    def test_formats(self, seconds, expected):
        assert format_seek_time(seconds) == expected


# ---------------------------------------------------------------------------
# Probe Tests
# ---------------------------------------------------------------------------

class TestProbeDuration:

    def test_runs_mediainfo_and_converts(self, fake_run):
        run = fake_run((0, "2500\n"))
        adapter = MediaShellAdapter(mediainfo_path="/usr/bin/mediainfo")

        assert adapter.probe_duration("video.mp4") == 2.5
        assert run.calls == [["/usr/bin/mediainfo", "--Inform=General;%Duration%", "video.mp4"]]

    def test_non_zero_exit_raises_probe_error(self, fake_run):
        fake_run((1, ""))

        with pytest.raises(ProbeError) as exc_info:
            MediaShellAdapter().probe_duration("video.mp4")

        assert exc_info.value.tool == "mediainfo"
        assert exc_info.value.stderr == "boom"

    def test_non_numeric_output_raises_probe_error(self, fake_run):
        fake_run((0, "General\n"))

        with pytest.raises(ProbeError, match="video.mp4"):
            MediaShellAdapter().probe_duration("video.mp4")

    def test_missing_binary_raises_probe_error(self, fake_run):
        fake_run(FileNotFoundError("mediainfo"))

        with pytest.raises(ProbeError, match="not found"):
            MediaShellAdapter().probe_duration("video.mp4")

    def test_timeout_raises_probe_error(self, fake_run):
        fake_run(subprocess.TimeoutExpired(["mediainfo"], 5))

        with pytest.raises(ProbeError, match="timed out"):
            MediaShellAdapter(timeout=5).probe_duration("video.mp4")


class TestProbeDimensions:

    def test_runs_ffprobe_for_first_video_stream(self, fake_run):
        run = fake_run((0, "1920x1080\n"))

        dimensions = MediaShellAdapter().probe_dimensions(Path("video.mp4"))

        assert dimensions == VideoDimensions(1920, 1080)
        assert run.calls == [[
            "ffprobe",
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "csv=s=x:p=0",
            "video.mp4",
        ]]

    def test_failure_is_recoverable(self, fake_run):
        """A failed probe raises instead of terminating the process."""
        fake_run((1, ""))

        with pytest.raises(ProbeError, match="video.mp4"):
            MediaShellAdapter().probe_dimensions("video.mp4")

    def test_malformed_output_is_recoverable(self, fake_run):
        fake_run((0, "1920\n"))

        with pytest.raises(ProbeError):
            MediaShellAdapter().probe_dimensions("video.mp4")


# ---------------------------------------------------------------------------
# Extraction Tests
# ---------------------------------------------------------------------------

class TestExtractFrame:

    def test_command_and_output_path(self, fake_run, tmp_path):
        run = fake_run((0, ""))

        output = MediaShellAdapter().extract_frame(tmp_path, "video.mp4", 4, 2.5)

        assert output == tmp_path / "frame_4.jpg"
        assert run.calls == [[
            "ffmpeg",
            "-ss", "2.5",
            "-i", "video.mp4",
            "-frames:v", "1",
            str(tmp_path / "frame_4.jpg"),
        ]]

    def test_non_zero_exit_raises_extraction_error(self, fake_run, tmp_path):
        fake_run((1, ""))

        with pytest.raises(ExtractionError) as exc_info:
            MediaShellAdapter().extract_frame(tmp_path, "video.mp4", 0, 0.0)

        assert exc_info.value.command[0] == "ffmpeg"


class TestExtractRegion:

    def test_single_region_command(self, fake_run, tmp_path):
        run = fake_run((0, ""))
        descriptor = FrameDescriptor("00:00:05", "100:80:10:20", 1.5)

        output = MediaShellAdapter().extract_region("video.mp4", descriptor, tmp_path)

        assert output == tmp_path / "image_00:00:05_1.500000.png"
        assert run.calls == [[
            "ffmpeg",
            "-ss", "00:00:05",
            "-i", "video.mp4",
            "-frames:v", "1",
            "-filter:v", "crop=100:80:10:20",
            str(output),
        ]]

    def test_single_region_failure_raises(self, fake_run, tmp_path):
        fake_run((1, ""))
        descriptor = FrameDescriptor("5", "10:10:0:0", 1.0)

        with pytest.raises(ExtractionError):
            MediaShellAdapter().extract_region("video.mp4", descriptor, tmp_path)


class TestExtractRegions:

    def test_empty_batch_runs_nothing(self, fake_run, tmp_path):
        run = fake_run()

        assert MediaShellAdapter().extract_regions("video.mp4", [], tmp_path) == []
        assert run.calls == []

    def test_processes_in_order_with_sequence_numbers(self, fake_run, tmp_path):
        run = fake_run((0, ""), (0, ""))
        descriptors = [
            FrameDescriptor("1", "10:10:0:0", 1.0),
            FrameDescriptor("2", "20:20:5:5", 2.0),
        ]

        outputs = MediaShellAdapter().extract_regions("video.mp4", descriptors, tmp_path)

        assert [path.name for path in outputs] == [
            "image_1_1.000000_1.png",
            "image_2_2.000000_2.png",
        ]
        assert [call[2] for call in run.calls] == ["1", "2"]
        assert run.calls[1][8] == "crop=20:20:5:5"

    def test_failure_names_descriptor_and_stops(self, fake_run, tmp_path):
        run = fake_run((0, ""), (1, ""), (0, ""))
        descriptors = [
            FrameDescriptor("1", "10:10:0:0", 1.0),
            FrameDescriptor("2", "20:20:5:5", 2.0),
            FrameDescriptor("3", "30:30:0:0", 3.0),
        ]

        with pytest.raises(RegionExtractionError) as exc_info:
            MediaShellAdapter().extract_regions("video.mp4", descriptors, tmp_path)

        assert exc_info.value.sequence == 2
        assert exc_info.value.descriptor == descriptors[1]
        assert isinstance(exc_info.value, ExtractionError)
        assert len(run.calls) == 2


class TestMissingTools:

    def test_reports_tools_not_on_path(self, monkeypatch):
        monkeypatch.setattr(
            processor.shutil, "which", lambda tool: None if tool == "mediainfo" else f"/usr/bin/{tool}"
        )

        assert MediaShellAdapter().missing_tools() == ["mediainfo"]
