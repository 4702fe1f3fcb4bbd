"""
Uniform-interval frame sampling.

The sampler probes a video's duration, works out how many evenly spaced
frames fit, and extracts each one in turn. Timestamp arithmetic lives in
a pure function so it can be tested without any media tools.
"""

import logging
import math
from pathlib import Path
from typing import Protocol, Union

from ...infrastructure.video.processor import SEEK_RESOLUTION_SECONDS, ExtractionError
from .models import SampledFrame

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class SamplingError(Exception):
    """Raised when a frame cannot be extracted during sampling."""

    def __init__(
        self,
        input_path: PathLike,
        timestamp_seconds: float,
        frame_index: int,
        cause: ExtractionError,
    ) -> None:
        super().__init__(
            f"Frame {frame_index} of {input_path} at {timestamp_seconds} seconds "
            f"could not be extracted: {cause}"
        )
        self.input_path = str(input_path)
        self.timestamp_seconds = timestamp_seconds
        self.frame_index = frame_index


class FrameSource(Protocol):
    """The two media operations the sampler needs."""

    def probe_duration(self, path: PathLike) -> float:
        ...

    def extract_frame(
        self,
        output_dir: PathLike,
        input_path: PathLike,
        frame_index: int,
        timestamp_seconds: float,
    ) -> Path:
        ...


def check_interval(interval_seconds: float) -> None:
    """Reject intervals that are not positive or too fine to seek to."""
    if interval_seconds <= 0:
        raise ValueError("Sampling interval must be greater than zero")
    if interval_seconds < SEEK_RESOLUTION_SECONDS:
        raise ValueError(
            f"Sampling interval must be at least {SEEK_RESOLUTION_SECONDS:g} seconds"
        )


def calculate_sample_timestamps(
    duration_seconds: float,
    interval_seconds: float,
) -> list[float]:
    """
    Timestamps for floor(duration / interval) evenly spaced frames.

    Frames start at 0 and never reach the end of the video:
    10s at 3s intervals -> [0, 3, 6].
    """
    check_interval(interval_seconds)
    if duration_seconds < 0:
        raise ValueError("Duration cannot be negative")

    # 5.8 / 0.2 is 28.999999999999996 in binary floating point
    frame_count = math.floor(round(duration_seconds / interval_seconds, 9))
    return [i * interval_seconds for i in range(frame_count)]


class UniformFrameSampler:
    """Extracts one frame every interval_seconds across a whole video."""

    def __init__(self, media: FrameSource):
        self._media = media

    def sample(
        self,
        output_dir: PathLike,
        input_path: PathLike,
        interval_seconds: float,
    ) -> list[SampledFrame]:
        """
        Write frame_<i>.jpg files for every interval into output_dir.

        The first failed extraction aborts the run with SamplingError;
        frames already written stay on disk. Probe failures propagate
        unchanged.
        """
        check_interval(interval_seconds)

        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        duration = self._media.probe_duration(input_path)
        timestamps = calculate_sample_timestamps(duration, interval_seconds)

        if not timestamps:
            logger.info(
                "Video shorter than sampling interval, nothing to extract",
                extra={"input": str(input_path), "duration": duration}
            )
            return []

        frames: list[SampledFrame] = []
        for index, timestamp in enumerate(timestamps):
            try:
                path = self._media.extract_frame(output_dir, input_path, index, timestamp)
            except ExtractionError as e:
                logger.error(
                    "Frame extraction failed",
                    extra={
                        "input": str(input_path),
                        "frame_index": index,
                        "timestamp": timestamp,
                    }
                )
                raise SamplingError(input_path, timestamp, index, e) from e

            frames.append(SampledFrame(index=index, timestamp_seconds=timestamp, path=path))

        logger.info(
            "Sampled frames",
            extra={
                "input": str(input_path),
                "duration": duration,
                "interval": interval_seconds,
                "frame_count": len(frames),
            }
        )
        return frames
