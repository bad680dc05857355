"""Configuration — defaults, layered config files and validated build settings."""

from soundshelf.config.hierarchy import load_config_hierarchy
from soundshelf.config.schema import BuildSettings

__all__ = ["BuildSettings", "load_config_hierarchy"]
