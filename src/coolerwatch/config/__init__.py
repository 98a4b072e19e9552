"""Configuration management for CoolerWatch."""

from coolerwatch.config.loader import ConfigurationError, get_config, load_config, reload_config
from coolerwatch.config.settings import CoolerWatchSettings

__all__ = [
    "ConfigurationError",
    "CoolerWatchSettings",
    "get_config",
    "load_config",
    "reload_config",
]
