"""Configuration hierarchy — layers build settings from every place they can be set.

A setting given in more than one place takes the value from the most
specific one. From least to most specific:

  package defaults
  the user's ``~/.soundshelf/config.yaml``
  the catalog's ``soundshelf.yaml`` (the nearest one at or above the catalog)
  ``SOUNDSHELF_*`` environment variables
  command-line options
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from soundshelf.config.defaults import get_defaults

logger = logging.getLogger(__name__)

_GLOBAL_CONFIG_PATH = Path.home() / ".soundshelf" / "config.yaml"
_CATALOG_CONFIG_NAME = "soundshelf.yaml"

_ENV_PREFIX = "SOUNDSHELF_"

# Environment variable suffix -> setting name
_ENV_SETTINGS: dict[str, str] = {
    "CACHE_DIR": "cache_dir",
    "BUILD_DIR": "build_dir",
    "CACHE_STRATEGY": "cache_strategy",
    "GRACE_HOURS": "grace_period_hours",
    "NO_CACHE": "no_cache",
    "PRODUCER_TIMEOUT": "producer_timeout",
    "FFMPEG": "ffmpeg_binary",
    "MAX_WORKERS": "max_workers",
    "URL_SALT": "url_salt",
    "LOG_LEVEL": "log_level",
}

# Numeric settings; everything else stays a string unless it is a no_* switch
_NUMERIC_SETTINGS: dict[str, type] = {
    "grace_period_hours": float,
    "producer_timeout": float,
    "max_workers": int,
    "waveform_points": int,
    "archive_compression_level": int,
}

_SWITCH_ON = {"1", "true", "yes", "on"}


def load_config_hierarchy(
    catalog_dir: str | Path | None = None, **runtime_overrides: Any
) -> dict[str, Any]:
    """Resolve the settings for a build of ``catalog_dir`` (default: cwd).

    Runtime overrides set to None count as not given.
    """
    catalog = Path(catalog_dir) if catalog_dir else Path.cwd()
    layers = [
        _read_settings_file(_GLOBAL_CONFIG_PATH),
        _read_settings_file(_catalog_settings_file(catalog)),
        _environment_settings(),
        {key: value for key, value in runtime_overrides.items() if value is not None},
    ]

    config = get_defaults()
    for layer in layers:
        config.update(layer)
    return config


def _read_settings_file(path: Path | None) -> dict[str, Any]:
    """Settings from one YAML file; a missing or malformed file contributes nothing."""
    if path is None or not path.is_file():
        return {}
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Ignoring settings file %s: %s", path, e)
        return {}
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: top level is not a mapping", path)
        return {}
    return data


def _catalog_settings_file(catalog: Path) -> Path | None:
    catalog = catalog.resolve()
    for directory in (catalog, *catalog.parents):
        candidate = directory / _CATALOG_CONFIG_NAME
        if candidate.is_file():
            return candidate
    return None


def _environment_settings() -> dict[str, Any]:
    settings: dict[str, Any] = {}
    for suffix, name in _ENV_SETTINGS.items():
        raw = os.environ.get(_ENV_PREFIX + suffix)
        if raw is not None:
            settings[name] = _parse_env_value(name, raw)
    return settings


def _parse_env_value(name: str, raw: str) -> Any:
    if name.startswith("no_"):
        return raw.strip().lower() in _SWITCH_ON

    number = _NUMERIC_SETTINGS.get(name)
    if number is None:
        return raw
    try:
        return number(raw)
    except ValueError:
        logger.warning(
            "Environment value %r for %s is not a valid %s, passing it on unchanged",
            raw,
            name,
            number.__name__,
        )
        return raw
