"""
Dataset building from stored videos.

Ties the pieces together the way a dataset job runs:
1. Fetch the source video from object storage into a temp copy
2. Sample frames (or crop detected objects) into a local directory
3. Optionally push sampled frames back to object storage
4. Delete the temp copy, whatever happened in between
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence, Union

from ...infrastructure.storage.client import StorageClient
from ...infrastructure.video.processor import MediaShellAdapter
from .models import FrameDescriptor, SampledFrame
from .sampler import UniformFrameSampler

logger = logging.getLogger(__name__)


@dataclass
class DatasetResult:
    """What a dataset job produced for one source video."""
    source: str
    frame_paths: list[Path] = field(default_factory=list)
    uploaded_keys: list[str] = field(default_factory=list)

    @property
    def frame_count(self) -> int:
        return len(self.frame_paths)


class DatasetBuilder:
    """
    Runs sampling and cropping jobs against stored videos.

    Cropped regions are only written locally; frames are pushed to
    object storage when an upload bucket is given.
    """

    def __init__(
        self,
        storage: StorageClient,
        media: MediaShellAdapter,
        sampler: Optional[UniformFrameSampler] = None,
    ):
        self._storage = storage
        self._media = media
        self._sampler = sampler or UniformFrameSampler(media)

    def sample_object(
        self,
        bucket_name: str,
        object_key: str,
        output_dir: Union[str, Path],
        interval_seconds: float,
        upload_bucket: Optional[str] = None,
        key_prefix: str = "frames",
    ) -> DatasetResult:
        """
        Sample frames from a stored video into output_dir/<video stem>/.

        With upload_bucket set, every frame is pushed to
        <key_prefix>/<video stem>/<frame file name>.
        """
        stem = Path(object_key).stem
        frame_dir = Path(output_dir) / stem

        with self._storage.fetch_to_local(bucket_name, object_key) as video:
            frames = self._sampler.sample(frame_dir, video.path, interval_seconds)

        result = DatasetResult(
            source=f"{bucket_name}/{object_key}",
            frame_paths=[frame.path for frame in frames],
        )

        if upload_bucket:
            result.uploaded_keys = self._push_frames(upload_bucket, key_prefix, stem, frames)

        logger.info(
            "Dataset job finished",
            extra={
                "source": result.source,
                "frame_count": result.frame_count,
                "uploaded": len(result.uploaded_keys),
            }
        )
        return result

    def crop_object(
        self,
        bucket_name: str,
        object_key: str,
        descriptors: Sequence[FrameDescriptor],
        output_dir: Union[str, Path],
    ) -> DatasetResult:
        """Crop each described object from a stored video into output_dir."""
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        with self._storage.fetch_to_local(bucket_name, object_key) as video:
            paths = self._media.extract_regions(video.path, descriptors, output_dir)

        return DatasetResult(source=f"{bucket_name}/{object_key}", frame_paths=paths)

    def _push_frames(
        self,
        bucket_name: str,
        key_prefix: str,
        stem: str,
        frames: list[SampledFrame],
    ) -> list[str]:
        prefix = key_prefix.strip("/")
        keys = []
        for frame in frames:
            key = f"{prefix}/{stem}/{frame.path.name}" if prefix else f"{stem}/{frame.path.name}"
            self._storage.push_from_local(bucket_name, frame.path, key)
            keys.append(key)
        return keys
