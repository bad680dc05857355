"""Validated build settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from soundshelf.config.defaults import (
    DEFAULT_ARCHIVE_COMPRESSION_LEVEL,
    DEFAULT_BUILD_DIR_NAME,
    DEFAULT_CACHE_DIR_NAME,
    DEFAULT_COVER_EDGE_SIZES,
    DEFAULT_DOWNLOAD_FORMATS,
    DEFAULT_FFMPEG_BINARY,
    DEFAULT_GRACE_PERIOD_HOURS,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_WORKERS,
    DEFAULT_PRODUCER_TIMEOUT,
    DEFAULT_STREAMING_FORMATS,
    DEFAULT_WAVEFORM_POINTS,
)
from soundshelf.errors.exceptions import ConfigError
from soundshelf.producers.transcode import AudioFormat
from soundshelf.types import OptimizationStrategy


class BuildSettings(BaseModel):
    """Everything one build needs, resolved from the merged config dict."""

    catalog_dir: Path
    cache_dir: Path | None = None
    build_dir: Path | None = None
    cache_strategy: OptimizationStrategy = OptimizationStrategy.DELAYED
    grace_period_hours: float = Field(default=DEFAULT_GRACE_PERIOD_HOURS, ge=0)
    no_cache: bool = False
    producer_timeout: float = Field(default=DEFAULT_PRODUCER_TIMEOUT, gt=0)
    ffmpeg_binary: str = DEFAULT_FFMPEG_BINARY
    max_workers: int = Field(default=DEFAULT_MAX_WORKERS, ge=1)
    url_salt: str = ""
    streaming_formats: list[AudioFormat] = Field(
        default_factory=lambda: [AudioFormat(f) for f in DEFAULT_STREAMING_FORMATS]
    )
    download_formats: list[AudioFormat] = Field(
        default_factory=lambda: [AudioFormat(f) for f in DEFAULT_DOWNLOAD_FORMATS]
    )
    cover_edge_sizes: list[int] = Field(default_factory=lambda: list(DEFAULT_COVER_EDGE_SIZES))
    waveform_points: int = Field(default=DEFAULT_WAVEFORM_POINTS, ge=1)
    archive_compression_level: int = Field(default=DEFAULT_ARCHIVE_COMPRESSION_LEVEL, ge=0, le=9)
    log_level: str = DEFAULT_LOG_LEVEL

    model_config = {"extra": "ignore"}

    @model_validator(mode="after")
    def _resolve_dirs(self) -> BuildSettings:
        if self.cache_dir is None:
            self.cache_dir = self.catalog_dir / DEFAULT_CACHE_DIR_NAME
        if self.build_dir is None:
            self.build_dir = self.catalog_dir / DEFAULT_BUILD_DIR_NAME
        return self

    @property
    def grace_period_seconds(self) -> float:
        return self.grace_period_hours * 3600

    @classmethod
    def from_config(cls, catalog_dir: str | Path, config: dict[str, Any]) -> BuildSettings:
        """Validate a merged config dict, raising ConfigError on bad values."""
        try:
            return cls.model_validate({**config, "catalog_dir": Path(catalog_dir)})
        except ValidationError as e:
            first = e.errors()[0]
            key = ".".join(str(part) for part in first["loc"])
            raise ConfigError(f"Invalid value for '{key}': {first['msg']}", key=key) from e
