"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: Object storage (S3-compatible, via boto3)
- video: Media command-line tools (mediainfo, ffprobe, ffmpeg)
"""
