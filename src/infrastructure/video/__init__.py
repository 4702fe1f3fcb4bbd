"""
Video tooling infrastructure.

Wraps the external media tools used to build the dataset:
- Duration probing (mediainfo)
- Dimension probing (ffprobe)
- Frame and cropped-region extraction (ffmpeg)
"""

from .processor import (
    ExtractionError,
    MediaShellAdapter,
    MediaToolError,
    ProbeError,
    RegionExtractionError,
    VideoDimensions,
    create_media_adapter,
)

__all__ = [
    "ExtractionError",
    "MediaShellAdapter",
    "MediaToolError",
    "ProbeError",
    "RegionExtractionError",
    "VideoDimensions",
    "create_media_adapter",
]
