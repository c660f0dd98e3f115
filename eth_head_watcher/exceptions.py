"""Error taxonomy for the block header watcher.

Every error is terminal where it is detected: it is logged once and the
process exits non-zero.
"""

from typing import Optional


class WatcherError(Exception):
    """Base class for watcher failures."""
    pass


class ConfigError(WatcherError):
    """Configuration source missing, unreadable or invalid."""
    pass


class RPCConnectionError(WatcherError):
    """Dial or WebSocket handshake to the endpoint failed."""
    pass


class RPCError(WatcherError):
    """The node answered a JSON-RPC call with an error object."""

    def __init__(self, message: str, code: Optional[int] = None, method: Optional[str] = None):
        self.code = code
        self.method = method
        if code is not None:
            message = f"RPC Error {code}: {message}"
        super().__init__(message)


class SubscriptionError(WatcherError):
    """A subscription could not be opened or has terminated."""
    pass
