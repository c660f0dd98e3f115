"""Utility functions and helpers."""

from eth_head_watcher.utils.logging import setup_logging

__all__ = [
    "setup_logging",
]
