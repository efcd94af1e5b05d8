"""Configuration helpers for generation and fetch settings."""

from .settings import CONFIG_ENV, Settings, config_path, load_settings

__all__ = ["CONFIG_ENV", "Settings", "config_path", "load_settings"]
