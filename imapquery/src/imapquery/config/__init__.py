"""Runtime configuration models and loader."""

from .loader import (
    ConfigLoadError,
    RuntimeConfigError,
    get_runtime_config,
    load_runtime_config,
    reset_runtime_config,
)
from .schema import ImapSettings, PartsSettings, RuntimeConfig, SearchSettings

__all__ = [
    "ConfigLoadError",
    "ImapSettings",
    "PartsSettings",
    "RuntimeConfig",
    "RuntimeConfigError",
    "SearchSettings",
    "get_runtime_config",
    "load_runtime_config",
    "reset_runtime_config",
]
