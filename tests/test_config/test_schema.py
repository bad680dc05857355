"""Tests for validated build settings."""

import pytest

from soundshelf.config.defaults import get_defaults
from soundshelf.config.schema import BuildSettings
from soundshelf.errors.exceptions import ConfigError
from soundshelf.producers.transcode import AudioFormat
from soundshelf.types import OptimizationStrategy


class TestBuildSettings:
    def test_defaults_resolve_dirs(self, tmp_path):
        settings = BuildSettings.from_config(tmp_path, get_defaults())
        assert settings.cache_dir == tmp_path / ".faircamp_cache"
        assert settings.build_dir == tmp_path / ".faircamp_build"
        assert settings.cache_strategy == OptimizationStrategy.DELAYED
        assert settings.streaming_formats == [AudioFormat.OPUS_128, AudioFormat.MP3_V5]

    def test_grace_seconds(self, tmp_path):
        settings = BuildSettings.from_config(tmp_path, {"grace_period_hours": 2})
        assert settings.grace_period_seconds == 7200

    def test_explicit_cache_dir(self, tmp_path):
        settings = BuildSettings.from_config(tmp_path, {"cache_dir": str(tmp_path / "c")})
        assert settings.cache_dir == tmp_path / "c"

    def test_unknown_strategy(self, tmp_path):
        with pytest.raises(ConfigError) as exc_info:
            BuildSettings.from_config(tmp_path, {"cache_strategy": "sometimes"})
        assert exc_info.value.key == "cache_strategy"

    def test_negative_grace(self, tmp_path):
        with pytest.raises(ConfigError):
            BuildSettings.from_config(tmp_path, {"grace_period_hours": -1})

    def test_unknown_format(self, tmp_path):
        with pytest.raises(ConfigError):
            BuildSettings.from_config(tmp_path, {"download_formats": ["mp4"]})

    def test_unknown_keys_ignored(self, tmp_path):
        settings = BuildSettings.from_config(tmp_path, {"theme": "dark"})
        assert settings.max_workers == 4
