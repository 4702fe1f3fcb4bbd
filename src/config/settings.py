"""
Application configuration using Pydantic settings.

Configuration is loaded from environment variables with sensible defaults.
Using Pydantic's BaseSettings means we get:
- Type validation at startup (fail fast if config is wrong)
- Documentation of what's required vs optional
- Easy testing with different configurations

Mock storage mode enables local runs without an object store.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..infrastructure.video.processor import SEEK_RESOLUTION_SECONDS

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings can be overridden via environment variables,
    e.g. STORAGE_BUCKET_NAME or FRAME_INTERVAL_SECONDS.
    """

    # Object Storage Configuration
    storage_bucket_name: str = Field(
        default="",
        description="Bucket that source videos are fetched from"
    )
    storage_output_bucket: Optional[str] = Field(
        default=None,
        description="Bucket that sampled frames are pushed to. Frames stay local when unset."
    )
    storage_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint for an S3-compatible store. AWS S3 when unset."
    )
    storage_region: Optional[str] = Field(
        default=None,
        description="Region name passed to the storage client"
    )
    storage_access_key_id: Optional[str] = Field(
        default=None,
        description="Access key ID. Ambient credentials are used when unset."
    )
    storage_secret_access_key: Optional[str] = Field(
        default=None,
        description="Secret access key, required together with the access key ID"
    )
    storage_mock_mode: bool = Field(
        default=False,
        description="Use in-memory mock instead of a real object store"
    )

    # Media Tools
    ffmpeg_path: str = Field(
        default="ffmpeg",
        description="ffmpeg binary used for frame and region extraction"
    )
    ffprobe_path: str = Field(
        default="ffprobe",
        description="ffprobe binary used for dimension probing"
    )
    mediainfo_path: str = Field(
        default="mediainfo",
        description="mediainfo binary used for duration probing"
    )
    tool_timeout_seconds: Optional[float] = Field(
        default=None,
        description="Timeout for each media tool invocation. No timeout when unset."
    )

    # Dataset Layout
    frame_interval_seconds: float = Field(
        default=1.0,
        description="Seconds between sampled frames"
    )
    output_dir: str = Field(
        default="frames",
        description="Local directory that frames and crops are written to"
    )
    frame_key_prefix: str = Field(
        default="frames",
        description="Object key prefix for uploaded frames"
    )
    temp_dir: Optional[str] = Field(
        default=None,
        description="Directory for downloaded temp copies. System default when unset."
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("frame_interval_seconds")
    @classmethod
    def interval_must_be_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("frame_interval_seconds must be greater than zero")
        if value < SEEK_RESOLUTION_SECONDS:
            raise ValueError(
                f"frame_interval_seconds must be at least {SEEK_RESOLUTION_SECONDS:g}"
            )
        return value

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return level

    def validate_required_fields(self) -> list[str]:
        """
        Validate that required fields are set based on mock mode settings.

        Returns list of missing required fields.
        This is separate from Pydantic validation because requirements
        depend on whether we're in mock mode.
        """
        missing = []

        if not self.storage_mock_mode and not self.storage_bucket_name:
            missing.append("STORAGE_BUCKET_NAME")

        # explicit credentials come as a pair
        if self.storage_access_key_id and not self.storage_secret_access_key:
            missing.append("STORAGE_SECRET_ACCESS_KEY")
        if self.storage_secret_access_key and not self.storage_access_key_id:
            missing.append("STORAGE_ACCESS_KEY_ID")

        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once per process.
    For tests, call get_settings.cache_clear() to reset.
    """
    return Settings()
