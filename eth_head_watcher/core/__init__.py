"""Core subscription and watcher components."""

from eth_head_watcher.core.rpc_client import EthWebSocketClient
from eth_head_watcher.core.subscription import HeadSubscription
from eth_head_watcher.core.watcher import HeaderWatcher, WatcherState

__all__ = [
    "EthWebSocketClient",
    "HeadSubscription",
    "HeaderWatcher",
    "WatcherState",
]
