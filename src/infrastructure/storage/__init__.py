"""
Object storage integration for source videos and dataset frames.

Supports S3 and S3-compatible stores via boto3.
Includes mock mode for local development without credentials.
"""

from .client import (
    LocalFileError,
    LocalVideo,
    MockStorageClient,
    ObjectNotFoundError,
    ObjectReadError,
    S3StorageClient,
    SeekError,
    StorageClient,
    StorageConfig,
    StorageConnectionError,
    StorageError,
    create_storage_client,
)

__all__ = [
    "LocalFileError",
    "LocalVideo",
    "MockStorageClient",
    "ObjectNotFoundError",
    "ObjectReadError",
    "S3StorageClient",
    "SeekError",
    "StorageClient",
    "StorageConfig",
    "StorageConnectionError",
    "StorageError",
    "create_storage_client",
]
