"""
Object storage client for source videos and dataset frames.

Talks to S3 or any S3-compatible store (R2, MinIO, GCS interop) through
boto3, with a mock mode for local development.

Downloads land in a temporary local file wrapped in a LocalVideo handle.
The handle owns the temp file: call cleanup() or use it as a context
manager, otherwise the file stays on disk.

Mock mode stores objects in memory, enabling pipeline testing without
provisioning actual object storage.
"""

import io
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Optional, Protocol, Union

logger = logging.getLogger(__name__)

# error codes boto3 reports for a missing bucket or key
_NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "NotFound", "404"}


class StorageError(Exception):
    """Raised when storage operations fail."""
    pass


class StorageConnectionError(StorageError, ConnectionError):
    """The storage client could not be constructed."""
    pass


class ObjectNotFoundError(StorageError):
    """The requested bucket or object does not exist."""
    pass


class ObjectReadError(StorageError):
    """The object read stream could not be opened."""
    pass


class LocalFileError(StorageError, OSError):
    """A local file could not be created, read, written or uploaded."""
    pass


class SeekError(LocalFileError):
    """A downloaded temp file could not be rewound."""
    pass


@dataclass
class StorageConfig:
    """
    Configuration for S3-compatible storage.

    Credentials are optional: when both keys are None, boto3 resolves
    them from the environment, shared config or instance role.
    """
    endpoint_url: Optional[str] = None
    region: Optional[str] = None
    access_key_id: Optional[str] = None
    secret_access_key: Optional[str] = None


class LocalVideo:
    """
    Scoped handle over a temporary local copy of a stored object.

    Positioned at byte 0 when returned from fetch_to_local. The temp file
    is deleted by cleanup(), which the context manager calls on exit.
    """

    def __init__(self, file: IO[bytes], bucket_name: str, object_key: str) -> None:
        self._file = file
        self.bucket_name = bucket_name
        self.object_key = object_key
        self._removed = False

    @property
    def path(self) -> Path:
        return Path(self._file.name)

    @property
    def file(self) -> IO[bytes]:
        return self._file

    @property
    def closed(self) -> bool:
        return self._file.closed

    def read(self, size: int = -1) -> bytes:
        return self._file.read(size)

    def seek(self, offset: int, whence: int = os.SEEK_SET) -> int:
        return self._file.seek(offset, whence)

    def tell(self) -> int:
        return self._file.tell()

    def close(self) -> None:
        """Close the file but leave it on disk."""
        self._file.close()

    def cleanup(self) -> None:
        """Close and delete the temp file. Safe to call more than once."""
        self._file.close()
        if self._removed:
            return
        try:
            os.unlink(self._file.name)
        except FileNotFoundError:
            pass
        self._removed = True
        logger.debug("Removed temp copy", extra={"path": self._file.name})

    def __enter__(self) -> "LocalVideo":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()

    def __repr__(self) -> str:
        return f"LocalVideo({self.bucket_name}/{self.object_key} -> {self._file.name})"


class StorageClient(Protocol):
    """
    Protocol for object storage operations.

    Using a protocol means tests can provide mocks and we can
    swap storage backends without changing dependent code.
    """

    def fetch_to_local(self, bucket_name: str, object_key: str) -> LocalVideo:
        """Download an object into a temp file positioned at byte 0."""
        ...

    def push_from_local(
        self,
        bucket_name: str,
        local_path: Union[str, Path],
        dest_key: str,
    ) -> None:
        """Upload a local file to the destination key."""
        ...


def _temp_suffix(object_key: str) -> str:
    suffix = Path(object_key).suffix
    return suffix if suffix else ".mp4"


def _create_temp_file(object_key: str, temp_dir: Optional[str]) -> IO[bytes]:
    try:
        return tempfile.NamedTemporaryFile(
            prefix="download-",
            suffix=_temp_suffix(object_key),
            dir=temp_dir,
            delete=False,
        )
    except OSError as e:
        logger.error(
            "Failed to create temp file",
            extra={"object_key": object_key, "temp_dir": temp_dir, "error": str(e)}
        )
        raise LocalFileError(f"Cannot create temp file for {object_key}: {e}") from e


def _discard(tmp: IO[bytes]) -> None:
    tmp.close()
    try:
        os.unlink(tmp.name)
    except FileNotFoundError:
        pass


def _copy_into_temp(
    source: IO[bytes],
    bucket_name: str,
    object_key: str,
    temp_dir: Optional[str],
) -> LocalVideo:
    """Copy a readable stream into a new temp file and rewind it."""
    tmp = _create_temp_file(object_key, temp_dir)

    try:
        shutil.copyfileobj(source, tmp)
        tmp.flush()
    except Exception as e:
        _discard(tmp)
        logger.error(
            "Failed to copy object to temp file",
            extra={"bucket": bucket_name, "object_key": object_key, "error": str(e)}
        )
        raise LocalFileError(
            f"Copy of {bucket_name}/{object_key} to {tmp.name} failed: {e}"
        ) from e

    try:
        tmp.seek(0)
    except OSError as e:
        _discard(tmp)
        logger.error(
            "Failed to rewind temp file",
            extra={"bucket": bucket_name, "object_key": object_key, "error": str(e)}
        )
        raise SeekError(f"Cannot rewind {tmp.name}: {e}") from e

    return LocalVideo(tmp, bucket_name, object_key)


def _open_local(local_path: Union[str, Path]) -> IO[bytes]:
    try:
        return open(local_path, "rb")
    except OSError as e:
        logger.error(
            "Failed to open local file",
            extra={"local_path": str(local_path), "error": str(e)}
        )
        raise LocalFileError(f"Cannot open {local_path}: {e}") from e


class S3StorageClient:
    """
    S3-compatible object storage client.

    Uses boto3, so the same code reaches AWS S3, Cloudflare R2, MinIO or
    GCS in interoperability mode by changing the endpoint URL.
    """

    def __init__(
        self,
        config: Optional[StorageConfig] = None,
        temp_dir: Optional[str] = None,
        s3_client=None,
    ) -> None:
        """
        Initialize the client with boto3.

        boto3 is imported here (not at module level) because mock mode
        doesn't need it. A prebuilt client can be injected for tests.
        """
        self._config = config or StorageConfig()
        self._temp_dir = temp_dir

        if s3_client is None:
            s3_client = self._build_s3_client(self._config)
        self._s3_client = s3_client

        logger.info(
            "Initialized S3 storage client",
            extra={"endpoint": self._config.endpoint_url}
        )

    @staticmethod
    def _build_s3_client(config: StorageConfig):
        try:
            import boto3
            from botocore.config import Config
        except ImportError:
            raise ImportError(
                "boto3 is required for object storage. Install with: pip install boto3"
            )

        try:
            return boto3.client(
                "s3",
                endpoint_url=config.endpoint_url,
                aws_access_key_id=config.access_key_id,
                aws_secret_access_key=config.secret_access_key,
                region_name=config.region,
                config=Config(signature_version="s3v4"),
            )
        except Exception as e:
            logger.error(
                "Failed to construct storage client",
                extra={"endpoint": config.endpoint_url, "error": str(e)}
            )
            raise StorageConnectionError(f"Cannot construct storage client: {e}") from e

    def fetch_to_local(self, bucket_name: str, object_key: str) -> LocalVideo:
        """
        Download an object into a new temp file.

        The returned handle is positioned at byte 0 and owns the temp file.
        """
        try:
            response = self._s3_client.get_object(Bucket=bucket_name, Key=object_key)
        except Exception as e:
            code = (getattr(e, "response", None) or {}).get("Error", {}).get("Code")
            logger.error(
                "Failed to open object",
                extra={"bucket": bucket_name, "object_key": object_key, "error": str(e)}
            )
            if code in _NOT_FOUND_CODES:
                raise ObjectNotFoundError(
                    f"Object not found: {bucket_name}/{object_key}"
                ) from e
            raise ObjectReadError(
                f"Cannot read {bucket_name}/{object_key}: {e}"
            ) from e

        body = response["Body"]
        try:
            video = _copy_into_temp(body, bucket_name, object_key, self._temp_dir)
        finally:
            body.close()

        logger.info(
            "Downloaded object",
            extra={
                "bucket": bucket_name,
                "object_key": object_key,
                "local_path": str(video.path),
            }
        )
        return video

    def push_from_local(
        self,
        bucket_name: str,
        local_path: Union[str, Path],
        dest_key: str,
    ) -> None:
        """Stream a local file to bucket_name/dest_key. No retry, no resume."""
        with _open_local(local_path) as f:
            try:
                self._s3_client.upload_fileobj(f, bucket_name, dest_key)
            except Exception as e:
                logger.error(
                    "Failed to upload file",
                    extra={
                        "bucket": bucket_name,
                        "dest_key": dest_key,
                        "local_path": str(local_path),
                        "error": str(e),
                    }
                )
                raise LocalFileError(
                    f"Upload of {local_path} to {bucket_name}/{dest_key} failed: {e}"
                ) from e

        logger.info(
            "Uploaded file",
            extra={"bucket": bucket_name, "dest_key": dest_key}
        )


# ---------------------------------------------------------------------------
# Mock Storage for Local Development
# ---------------------------------------------------------------------------

class MockStorageClient:
    """
    In-memory storage for local development.

    Objects are kept in a dictionary keyed by (bucket, key). Downloads
    still go through a real temp file so callers see the same handle
    behaviour as with S3.
    """

    def __init__(self, temp_dir: Optional[str] = None) -> None:
        self._objects: dict[tuple[str, str], bytes] = {}
        self._temp_dir = temp_dir
        logger.info("Initialized mock storage client (in-memory)")

    def put_object(self, bucket_name: str, object_key: str, data: bytes) -> None:
        """Seed an object directly."""
        self._objects[(bucket_name, object_key)] = data

    def get_object(self, bucket_name: str, object_key: str) -> bytes:
        try:
            return self._objects[(bucket_name, object_key)]
        except KeyError:
            raise ObjectNotFoundError(f"Object not found: {bucket_name}/{object_key}")

    def keys(self, bucket_name: str) -> list[str]:
        return sorted(key for bucket, key in self._objects if bucket == bucket_name)

    def fetch_to_local(self, bucket_name: str, object_key: str) -> LocalVideo:
        """Copy an in-memory object into a temp file."""
        data = self.get_object(bucket_name, object_key)
        return _copy_into_temp(io.BytesIO(data), bucket_name, object_key, self._temp_dir)

    def push_from_local(
        self,
        bucket_name: str,
        local_path: Union[str, Path],
        dest_key: str,
    ) -> None:
        """Store a local file's bytes in memory."""
        with _open_local(local_path) as f:
            self._objects[(bucket_name, dest_key)] = f.read()

        logger.debug(
            "Stored file in mock storage",
            extra={"bucket": bucket_name, "dest_key": dest_key}
        )


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

def create_storage_client(
    config: Optional[StorageConfig] = None,
    mock_mode: bool = False,
    temp_dir: Optional[str] = None,
) -> StorageClient:
    """
    Create storage client based on configuration.

    Args:
        config: Storage configuration (ambient credentials when None)
        mock_mode: If True, return mock client for testing
        temp_dir: Directory for downloaded temp copies

    Returns:
        StorageClient implementation (S3 or Mock)
    """
    if mock_mode:
        return MockStorageClient(temp_dir=temp_dir)

    return S3StorageClient(config, temp_dir=temp_dir)
