"""Error handling — exception hierarchy for cache, producers and builds."""

from soundshelf.errors.exceptions import (
    CacheConsistencyError,
    ConfigError,
    IndexLoadError,
    ProducerError,
    ReleaseLevelError,
    SoundshelfError,
)

__all__ = [
    "SoundshelfError",
    "ProducerError",
    "CacheConsistencyError",
    "IndexLoadError",
    "ReleaseLevelError",
    "ConfigError",
]
