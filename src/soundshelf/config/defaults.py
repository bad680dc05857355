"""Package-level default configuration values."""

from __future__ import annotations

from typing import Any

# Directories, relative to the catalog directory
DEFAULT_CACHE_DIR_NAME = ".faircamp_cache"
DEFAULT_BUILD_DIR_NAME = ".faircamp_build"

# Default cache settings
DEFAULT_CACHE_STRATEGY = "delayed"
DEFAULT_GRACE_PERIOD_HOURS = 24.0
DEFAULT_NO_CACHE = False

# Producers
DEFAULT_PRODUCER_TIMEOUT = 600.0
DEFAULT_FFMPEG_BINARY = "ffmpeg"
DEFAULT_STREAMING_FORMATS = ["opus-128", "mp3-v5"]
DEFAULT_DOWNLOAD_FORMATS = ["flac", "mp3-v0"]
DEFAULT_COVER_EDGE_SIZES = [160, 320, 480, 800, 1280]
DEFAULT_WAVEFORM_POINTS = 320
DEFAULT_ARCHIVE_COMPRESSION_LEVEL = 6

# Default concurrency settings
DEFAULT_MAX_WORKERS = 4

# Hotlink rotation
DEFAULT_URL_SALT = ""

# Log level
DEFAULT_LOG_LEVEL = "WARNING"


def get_defaults() -> dict[str, Any]:
    """Return all defaults as a flat dictionary for merging."""
    return {
        "cache_strategy": DEFAULT_CACHE_STRATEGY,
        "grace_period_hours": DEFAULT_GRACE_PERIOD_HOURS,
        "no_cache": DEFAULT_NO_CACHE,
        "producer_timeout": DEFAULT_PRODUCER_TIMEOUT,
        "ffmpeg_binary": DEFAULT_FFMPEG_BINARY,
        "streaming_formats": list(DEFAULT_STREAMING_FORMATS),
        "download_formats": list(DEFAULT_DOWNLOAD_FORMATS),
        "cover_edge_sizes": list(DEFAULT_COVER_EDGE_SIZES),
        "waveform_points": DEFAULT_WAVEFORM_POINTS,
        "archive_compression_level": DEFAULT_ARCHIVE_COMPRESSION_LEVEL,
        "max_workers": DEFAULT_MAX_WORKERS,
        "url_salt": DEFAULT_URL_SALT,
        "log_level": DEFAULT_LOG_LEVEL,
    }
