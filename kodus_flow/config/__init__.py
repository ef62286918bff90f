"""Configuration loading for kodus_flow.

Usage:
    from kodus_flow.config import get_settings

    settings = get_settings()
    timeout = settings.orchestrator.default_timeout_seconds
"""

from functools import lru_cache

from kodus_flow.config.loader import load_config
from kodus_flow.config.settings import Settings, set_toml_config


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings instance.

    Cached for the lifetime of the process; call reload_settings() after
    changing files or environment.
    """
    set_toml_config(load_config())
    return Settings()


def reload_settings() -> Settings:
    """Clear the settings cache and reload configuration."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["get_settings", "reload_settings", "Settings"]
