"""
Media tool adapter using mediainfo, FFprobe and FFmpeg.

This module wraps the command-line tools the dataset pipeline needs:
1. Probe video duration (mediainfo, milliseconds)
2. Probe video dimensions (ffprobe, WIDTHxHEIGHT)
3. Extract a single frame at a timestamp (ffmpeg)
4. Extract a cropped region at a timestamp (ffmpeg crop filter)

Every call blocks until the tool exits. Failures are raised as
MediaToolError subclasses carrying the tool, command and stderr so the
caller decides whether to abort.
"""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import NamedTuple, Optional, Sequence, Type, Union

from ...core.dataset.models import FrameDescriptor

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class MediaToolError(Exception):
    """Raised when an external media tool fails."""

    def __init__(
        self,
        message: str,
        tool: Optional[str] = None,
        command: Optional[list[str]] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.tool = tool
        self.command = command or []
        self.stderr = stderr


class ProbeError(MediaToolError):
    """A metadata probe failed or produced unparsable output."""
    pass


class ExtractionError(MediaToolError):
    """FFmpeg failed to write the requested image."""
    pass


class RegionExtractionError(ExtractionError):
    """A batch crop stopped at a failing descriptor."""

    def __init__(
        self,
        message: str,
        sequence: int,
        descriptor: FrameDescriptor,
        tool: Optional[str] = None,
        command: Optional[list[str]] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message, tool=tool, command=command, stderr=stderr)
        self.sequence = sequence
        self.descriptor = descriptor


class VideoDimensions(NamedTuple):
    """Pixel size of the first video stream."""
    width: int
    height: int


# ---------------------------------------------------------------------------
# Output Parsing
# ---------------------------------------------------------------------------

def parse_duration_output(output: str) -> float:
    """
    Parse mediainfo's General;%Duration% output into seconds.

    mediainfo reports milliseconds as a bare integer: "2500" -> 2.5
    """
    text = output.strip()
    try:
        milliseconds = int(text)
    except ValueError:
        raise ProbeError(f"Duration is not an integer number of milliseconds: {text!r}")

    if milliseconds < 0:
        raise ProbeError(f"Duration cannot be negative: {text!r}")

    return milliseconds / 1000.0


def parse_dimensions_output(output: str) -> VideoDimensions:
    """Parse ffprobe's csv=s=x:p=0 output, e.g. "1920x1080"."""
    text = output.strip()
    parts = text.split("x")
    if len(parts) != 2:
        raise ProbeError(f"Expected WIDTHxHEIGHT, got {text!r}")

    try:
        width = int(parts[0])
        height = int(parts[1])
    except ValueError:
        raise ProbeError(f"Non-numeric dimensions in {text!r}")

    return VideoDimensions(width=width, height=height)


# -ss values are written with microsecond precision
SEEK_RESOLUTION_SECONDS = 0.000001


def format_seek_time(seconds: float) -> str:
    """
    Render seconds for ffmpeg's -ss option.

    Plain fixed-point with the fewest digits: 0 -> "0", 2.5 -> "2.5",
    0.30000000000000004 -> "0.3". Anything finer than
    SEEK_RESOLUTION_SECONDS is rounded away.
    """
    text = f"{seconds:.6f}".rstrip("0").rstrip(".")
    return text or "0"


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

class MediaShellAdapter:
    """
    Runs mediainfo, ffprobe and ffmpeg as subprocesses.

    Stdin is closed for every tool so an ffmpeg overwrite prompt
    fails the call instead of hanging it.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        ffprobe_path: str = "ffprobe",
        mediainfo_path: str = "mediainfo",
        timeout: Optional[float] = None,
    ):
        """
        Initialize adapter with tool paths.

        Args:
            ffmpeg_path: Path to ffmpeg binary (default assumes it's in PATH)
            ffprobe_path: Path to ffprobe binary
            mediainfo_path: Path to mediainfo binary
            timeout: Seconds before a tool call is abandoned, None to wait forever
        """
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path
        self._mediainfo = mediainfo_path
        self._timeout = timeout

    def missing_tools(self) -> list[str]:
        """Return configured binaries that cannot be found on PATH."""
        return [
            tool
            for tool in (self._mediainfo, self._ffprobe, self._ffmpeg)
            if shutil.which(tool) is None
        ]

    def _run(
        self,
        cmd: list[str],
        error_cls: Type[MediaToolError],
    ) -> subprocess.CompletedProcess:
        tool = cmd[0]
        logger.debug("Running media tool", extra={"command": cmd})

        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self._timeout,
            )
        except FileNotFoundError as e:
            raise error_cls(f"{tool} not found", tool=tool, command=cmd) from e
        except subprocess.TimeoutExpired as e:
            raise error_cls(
                f"{tool} timed out after {self._timeout} seconds",
                tool=tool,
                command=cmd,
            ) from e

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            raise error_cls(
                f"{tool} exited with status {result.returncode}: {stderr}",
                tool=tool,
                command=cmd,
                stderr=stderr,
            )

        return result

    def probe_duration(self, path: PathLike) -> float:
        """Return the video's duration in seconds using mediainfo."""
        cmd = [
            self._mediainfo,
            "--Inform=General;%Duration%",
            str(path),
        ]
        result = self._run(cmd, ProbeError)

        try:
            return parse_duration_output(result.stdout)
        except ProbeError as e:
            logger.error(
                "Unparsable duration",
                extra={"path": str(path), "output": result.stdout}
            )
            raise ProbeError(
                f"Cannot read duration of {path}: {e}",
                tool=self._mediainfo,
                command=cmd,
            ) from e

    def probe_dimensions(self, path: PathLike) -> VideoDimensions:
        """Return the first video stream's width and height using ffprobe."""
        cmd = [
            self._ffprobe,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "stream=width,height",
            "-of", "csv=s=x:p=0",
            str(path),
        ]

        try:
            result = self._run(cmd, ProbeError)
            dimensions = parse_dimensions_output(result.stdout)
        except ProbeError as e:
            logger.error(
                "FFprobe dimension probe failed",
                extra={"path": str(path), "error": str(e)}
            )
            raise ProbeError(
                f"Cannot read dimensions of {path}: {e}",
                tool=self._ffprobe,
                command=cmd,
                stderr=e.stderr,
            ) from e

        logger.info(
            "Extracted video dimensions",
            extra={"path": str(path), "width": dimensions.width, "height": dimensions.height}
        )
        return dimensions

    def extract_frame(
        self,
        output_dir: PathLike,
        input_path: PathLike,
        frame_index: int,
        timestamp_seconds: float,
    ) -> Path:
        """Write one frame at timestamp_seconds to output_dir/frame_<index>.jpg."""
        output_path = Path(output_dir) / f"frame_{frame_index}.jpg"

        # -ss before -i for fast seeking
        cmd = [
            self._ffmpeg,
            "-ss", format_seek_time(timestamp_seconds),
            "-i", str(input_path),
            "-frames:v", "1",
            str(output_path),
        ]
        self._run(cmd, ExtractionError)

        return output_path

    def _region_command(
        self,
        input_path: PathLike,
        descriptor: FrameDescriptor,
        output_path: Path,
    ) -> list[str]:
        return [
            self._ffmpeg,
            "-ss", descriptor.time_frame,
            "-i", str(input_path),
            "-frames:v", "1",
            "-filter:v", f"crop={descriptor.bounding_box}",
            str(output_path),
        ]

    def extract_region(
        self,
        input_path: PathLike,
        descriptor: FrameDescriptor,
        output_dir: PathLike = ".",
    ) -> Path:
        """Write one frame cropped to the descriptor's bounding box."""
        output_path = Path(output_dir) / descriptor.output_name()
        cmd = self._region_command(input_path, descriptor, output_path)

        try:
            self._run(cmd, ExtractionError)
        except ExtractionError:
            logger.error(
                "FFmpeg crop failed",
                extra={
                    "time_frame": descriptor.time_frame,
                    "bounding_box": descriptor.bounding_box,
                }
            )
            raise

        logger.info(
            "Image frame extracted and cropped",
            extra={
                "time_frame": descriptor.time_frame,
                "bounding_box": descriptor.bounding_box,
                "output": str(output_path),
            }
        )
        return output_path

    def extract_regions(
        self,
        input_path: PathLike,
        descriptors: Sequence[FrameDescriptor],
        output_dir: PathLike = ".",
    ) -> list[Path]:
        """
        Crop each descriptor in order, numbering outputs from 1.

        Stops at the first failure with a RegionExtractionError naming
        the descriptor. Outputs written before it stay on disk.
        """
        outputs: list[Path] = []

        for sequence, descriptor in enumerate(descriptors, start=1):
            output_path = Path(output_dir) / descriptor.output_name(sequence)
            cmd = self._region_command(input_path, descriptor, output_path)

            try:
                self._run(cmd, ExtractionError)
            except ExtractionError as e:
                logger.error(
                    "FFmpeg crop failed",
                    extra={
                        "sequence": sequence,
                        "time_frame": descriptor.time_frame,
                        "bounding_box": descriptor.bounding_box,
                    }
                )
                raise RegionExtractionError(
                    f"Region {sequence} (time frame {descriptor.time_frame}, "
                    f"bounding box {descriptor.bounding_box}) failed: {e}",
                    sequence=sequence,
                    descriptor=descriptor,
                    tool=e.tool,
                    command=e.command,
                    stderr=e.stderr,
                ) from e

            outputs.append(output_path)

        logger.info(
            "Extracted cropped regions",
            extra={"input": str(input_path), "count": len(outputs)}
        )
        return outputs


def create_media_adapter(
    ffmpeg_path: str = "ffmpeg",
    ffprobe_path: str = "ffprobe",
    mediainfo_path: str = "mediainfo",
    timeout: Optional[float] = None,
) -> MediaShellAdapter:
    """Factory function for the media adapter."""
    return MediaShellAdapter(
        ffmpeg_path=ffmpeg_path,
        ffprobe_path=ffprobe_path,
        mediainfo_path=mediainfo_path,
        timeout=timeout,
    )
