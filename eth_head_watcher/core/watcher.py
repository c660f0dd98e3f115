"""Block header watcher: subscribe to new heads and log each block number."""

import asyncio
from enum import Enum
from typing import Optional

import structlog

from eth_head_watcher.core.rpc_client import EthWebSocketClient
from eth_head_watcher.core.subscription import HeadSubscription
from eth_head_watcher.exceptions import RPCConnectionError, SubscriptionError
from eth_head_watcher.models.config import WatcherConfig
from eth_head_watcher.models.headers import BlockHeader

logger = structlog.get_logger(__name__)


class WatcherState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    TERMINATED = "TERMINATED"


class HeaderWatcher:
    """
    Maintains one newHeads subscription and reports every header.

    The watcher never retries. Any failure moves it to ``TERMINATED`` and is
    raised to the caller, which decides whether to exit or restart.
    """

    def __init__(self, config: WatcherConfig, client: Optional[EthWebSocketClient] = None):
        self.config = config
        self.client = client if client is not None else EthWebSocketClient(config)
        self.logger = logger.bind(component="header_watcher")

        self.state = WatcherState.IDLE
        self.headers_seen = 0
        self.last_error: Optional[Exception] = None

    def _terminate(self, error: Exception) -> None:
        self.state = WatcherState.TERMINATED
        self.last_error = error

    async def initialize(self) -> EthWebSocketClient:
        """Dial the configured endpoint."""
        try:
            return await self.client.dial()
        except RPCConnectionError as e:
            self.logger.error("Failed to connect to RPC endpoint", error=str(e))
            self._terminate(e)
            raise

    async def subscribe(self) -> HeadSubscription:
        """Open the newHeads subscription on the connected client."""
        try:
            subscription = await self.client.subscribe_new_heads()
        except SubscriptionError as e:
            self.logger.error("Failed to subscribe to new heads", error=str(e))
            self._terminate(e)
            raise
        self.state = WatcherState.RUNNING
        return subscription

    def handle_header(self, header: BlockHeader) -> None:
        self.headers_seen += 1
        self.logger.info("New block", number=header.number_str, hash=header.hash)

    async def run(self, subscription: HeadSubscription) -> None:
        """
        Consume the subscription until it fails.

        Waits on the header stream and the error stream at once and handles
        whichever is ready first, one event per iteration. An available error
        always wins over buffered headers.

        Raises:
            SubscriptionError: always, once the subscription terminates.
        """
        err = subscription.err()
        self.state = WatcherState.RUNNING

        while True:
            if err.done():
                error = err.result()
                self.logger.error("Subscription terminated", error=str(error))
                self._terminate(error)
                raise error

            next_header = asyncio.ensure_future(subscription.next_header())
            try:
                await asyncio.wait({next_header, err}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                if not next_header.done():
                    next_header.cancel()

            if err.done():
                continue

            self.handle_header(next_header.result())

    async def watch(self) -> None:
        """Connect, subscribe and run until a terminal error."""
        try:
            await self.initialize()
            subscription = await self.subscribe()
            await self.run(subscription)
        finally:
            await self.client.close()
