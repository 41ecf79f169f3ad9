"""Configuration module -- exports Settings, load_config, and load_settings."""

from guidebase.config.loader import load_config, load_settings
from guidebase.config.settings import Settings

__all__ = ["Settings", "load_config", "load_settings"]
