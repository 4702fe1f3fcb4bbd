"""
Domain models for the frame dataset.

These models have no dependencies on storage clients or media tools.
Frame descriptors come from an upstream object-detection stage; the
pipeline only reads them.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class FrameDescriptor:
    """
    One cropped-object extraction request.

    Frozen because descriptors are values handed over by the caller.
    time_frame is passed to ffmpeg's -ss unchanged, so both "12.5" and
    "00:00:12.500" work. bounding_box is crop filter geometry (w:h:x:y).
    """
    time_frame: str
    bounding_box: str
    size: float

    def __post_init__(self) -> None:
        if not self.time_frame.strip():
            raise ValueError("Frame descriptor time_frame cannot be empty")
        if not self.bounding_box.strip():
            raise ValueError("Frame descriptor bounding_box cannot be empty")

    @classmethod
    def from_seconds(
        cls,
        seconds: float,
        bounding_box: str,
        size: float,
    ) -> "FrameDescriptor":
        if seconds < 0:
            raise ValueError("Timestamp cannot be negative")
        return cls(time_frame=f"{seconds:g}", bounding_box=bounding_box, size=size)

    @classmethod
    def from_dict(cls, data: dict) -> "FrameDescriptor":
        """Build from a {time_frame, bounding_box, size} mapping."""
        try:
            return cls(
                time_frame=str(data["time_frame"]),
                bounding_box=str(data["bounding_box"]),
                size=float(data["size"]),
            )
        except KeyError as e:
            raise ValueError(f"Frame descriptor is missing {e.args[0]!r}") from e
        except TypeError as e:
            raise ValueError(f"Frame descriptor is malformed: {e}") from e

    def output_name(self, sequence: Optional[int] = None) -> str:
        """
        File name for the cropped image.

        image_<time_frame>_<size>.png, with _<sequence> appended for
        batch extraction.
        """
        if sequence is None:
            return f"image_{self.time_frame}_{self.size:f}.png"
        return f"image_{self.time_frame}_{self.size:f}_{sequence}.png"


@dataclass(frozen=True)
class SampledFrame:
    """A frame written by the uniform sampler."""
    index: int
    timestamp_seconds: float
    path: Path

    @property
    def timestamp_formatted(self) -> str:
        """Human-readable format: MM:SS.ms"""
        minutes = int(self.timestamp_seconds // 60)
        secs = self.timestamp_seconds % 60
        return f"{minutes:02d}:{secs:05.2f}"
