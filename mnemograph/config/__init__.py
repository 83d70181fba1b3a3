"""Configuration for mnemograph.

Usage:
    from mnemograph.config import get_settings

    settings = get_settings()
    backend = settings.storage.backend
    half_life = settings.graph.decay.half_life_days
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

from mnemograph.config.loader import load_config
from mnemograph.config.settings import Settings, set_toml_config


def load_settings(
    config_dir: Path | None = None,
    env: str | None = None,
    **overrides: Any,
) -> Settings:
    """Build fresh Settings from an explicit config directory and environment.

    Keyword overrides take precedence over every other source.
    """
    set_toml_config(load_config(config_dir, env))
    return Settings(**overrides)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, loaded once.

    Call `reload_settings()` (or `get_settings.cache_clear()`) to re-read.
    """
    return load_settings()


def reload_settings() -> Settings:
    """Clear the settings cache and reload configuration."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["get_settings", "load_settings", "reload_settings", "Settings"]
