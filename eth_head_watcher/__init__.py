"""
Ethereum Block Header Watcher

Subscribes to newly produced block headers on an Ethereum-compatible
WebSocket endpoint and logs each block number as it arrives.
"""

__version__ = "1.0.0"
__author__ = "Chain Monitoring Team"
__description__ = "newHeads subscription probe for Ethereum-compatible nodes"

from eth_head_watcher.core.watcher import HeaderWatcher, WatcherState
from eth_head_watcher.core.rpc_client import EthWebSocketClient
from eth_head_watcher.models.config import WatcherConfig, load_config
from eth_head_watcher.exceptions import (
    WatcherError,
    ConfigError,
    RPCConnectionError,
    RPCError,
    SubscriptionError,
)

__all__ = [
    "HeaderWatcher",
    "WatcherState",
    "EthWebSocketClient",
    "WatcherConfig",
    "load_config",
    "WatcherError",
    "ConfigError",
    "RPCConnectionError",
    "RPCError",
    "SubscriptionError",
]
