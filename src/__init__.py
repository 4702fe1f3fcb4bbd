"""
video-to-dataset - builds image datasets from stored videos.

This package contains the complete application:
- core: Frame sampling and dataset building
- infrastructure: Object storage and media tool integrations
- config: Application configuration
"""

__version__ = "0.1.0"
