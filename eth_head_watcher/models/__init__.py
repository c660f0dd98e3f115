"""Data models and configuration."""

from eth_head_watcher.models.config import ConfigError, WatcherConfig, load_config
from eth_head_watcher.models.headers import BlockHeader, HeaderDecodeError

__all__ = [
    "ConfigError",
    "WatcherConfig",
    "load_config",
    "BlockHeader",
    "HeaderDecodeError",
]
