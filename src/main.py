"""
Command-line entry point.

Wires settings, the storage client and the media adapter together and
exposes the dataset operations as subcommands:

    python -m src.main probe video.mp4
    python -m src.main sample video.mp4 --interval 0.5 --output-dir frames/
    python -m src.main sample-object videos/run1.mp4 --upload-bucket my-dataset
    python -m src.main crop video.mp4 detections.json --output-dir crops/

Settings come from environment variables or a .env file (see
src/config/settings.py); command-line flags override them.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from .config.settings import LOG_LEVELS, Settings, get_settings
from .core.dataset.builder import DatasetBuilder
from .core.dataset.models import FrameDescriptor
from .core.dataset.sampler import SamplingError, UniformFrameSampler
from .infrastructure.storage.client import (
    StorageConfig,
    StorageError,
    create_storage_client,
)
from .infrastructure.video.processor import (
    MediaShellAdapter,
    MediaToolError,
    create_media_adapter,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(format=LOG_FORMAT, level=level, force=True)


def create_media(settings: Settings) -> MediaShellAdapter:
    return create_media_adapter(
        ffmpeg_path=settings.ffmpeg_path,
        ffprobe_path=settings.ffprobe_path,
        mediainfo_path=settings.mediainfo_path,
        timeout=settings.tool_timeout_seconds,
    )


def create_builder(settings: Settings) -> DatasetBuilder:
    """Build a DatasetBuilder from settings, honouring storage mock mode."""
    storage = create_storage_client(
        config=StorageConfig(
            endpoint_url=settings.storage_endpoint_url,
            region=settings.storage_region,
            access_key_id=settings.storage_access_key_id,
            secret_access_key=settings.storage_secret_access_key,
        ),
        mock_mode=settings.storage_mock_mode,
        temp_dir=settings.temp_dir,
    )
    return DatasetBuilder(storage, create_media(settings))


def load_descriptors(path: Path) -> list[FrameDescriptor]:
    """Read a JSON list of {time_frame, bounding_box, size} objects."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON list of frame descriptors")

    descriptors = []
    for index, item in enumerate(data):
        if not isinstance(item, dict):
            raise ValueError(f"Frame descriptor {index} in {path} must be a JSON object")
        descriptors.append(FrameDescriptor.from_dict(item))
    return descriptors


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="video-to-dataset",
        description="Build image datasets from videos.",
    )
    parser.add_argument(
        "--log-level", type=str.upper, choices=LOG_LEVELS, help="Override LOG_LEVEL"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("check-tools", help="Verify mediainfo, ffprobe and ffmpeg are installed")

    probe = commands.add_parser("probe", help="Print duration and dimensions of a video")
    probe.add_argument("path", type=Path)

    sample = commands.add_parser("sample", help="Sample frames from a local video")
    sample.add_argument("path", type=Path)
    sample.add_argument("--interval", type=float, help="Seconds between frames")
    sample.add_argument("--output-dir", type=Path)

    sample_object = commands.add_parser(
        "sample-object", help="Sample frames from a video in object storage"
    )
    sample_object.add_argument("key", help="Object key of the source video")
    sample_object.add_argument("--bucket", help="Source bucket (STORAGE_BUCKET_NAME)")
    sample_object.add_argument("--interval", type=float, help="Seconds between frames")
    sample_object.add_argument("--output-dir", type=Path)
    sample_object.add_argument(
        "--upload-bucket", help="Push frames to this bucket (STORAGE_OUTPUT_BUCKET)"
    )

    crop = commands.add_parser("crop", help="Crop detected objects from a local video")
    crop.add_argument("path", type=Path)
    crop.add_argument("descriptors", type=Path, help="JSON file of frame descriptors")
    crop.add_argument("--output-dir", type=Path)

    return parser


def _interval(args: argparse.Namespace, settings: Settings) -> float:
    return args.interval if args.interval is not None else settings.frame_interval_seconds


def _output_dir(args: argparse.Namespace, settings: Settings) -> Path:
    return args.output_dir if args.output_dir is not None else Path(settings.output_dir)


def run(args: argparse.Namespace, settings: Settings) -> int:
    media = create_media(settings)

    if args.command == "check-tools":
        missing = media.missing_tools()
        if missing:
            print(f"missing tools: {', '.join(missing)}", file=sys.stderr)
            return 1
        print("all media tools found")
        return 0

    if args.command == "probe":
        duration = media.probe_duration(args.path)
        dimensions = media.probe_dimensions(args.path)
        print(f"duration: {duration:.3f}s")
        print(f"dimensions: {dimensions.width}x{dimensions.height}")
        return 0

    if args.command == "sample":
        frames = UniformFrameSampler(media).sample(
            _output_dir(args, settings), args.path, _interval(args, settings)
        )
        print(f"extracted {len(frames)} frames")
        return 0

    if args.command == "crop":
        output_dir = _output_dir(args, settings)
        output_dir.mkdir(parents=True, exist_ok=True)
        paths = media.extract_regions(args.path, load_descriptors(args.descriptors), output_dir)
        print(f"extracted {len(paths)} regions")
        return 0

    # sample-object
    bucket = args.bucket or settings.storage_bucket_name
    missing = [
        name for name in settings.validate_required_fields()
        if not (args.bucket and name == "STORAGE_BUCKET_NAME")
    ]
    if missing:
        logger.error("Missing required configuration", extra={"missing_fields": missing})
        print(f"missing configuration: {', '.join(missing)}", file=sys.stderr)
        return 1

    result = create_builder(settings).sample_object(
        bucket,
        args.key,
        _output_dir(args, settings),
        _interval(args, settings),
        upload_bucket=args.upload_bucket or settings.storage_output_bucket,
        key_prefix=settings.frame_key_prefix,
    )
    print(f"extracted {result.frame_count} frames, uploaded {len(result.uploaded_keys)}")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = get_settings()
    except ValueError as e:
        # pydantic's ValidationError is a ValueError
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(args.log_level or settings.log_level)

    try:
        return run(args, settings)
    except (StorageError, MediaToolError, SamplingError, ValueError, OSError) as e:
        logger.error("Command failed", extra={"command": args.command, "error": str(e)})
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
