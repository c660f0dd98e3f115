"""newHeads subscription: a header stream and a one-shot error stream."""

import asyncio
import structlog

from eth_head_watcher.exceptions import SubscriptionError
from eth_head_watcher.models.headers import BlockHeader

logger = structlog.get_logger(__name__)


class HeadSubscription:
    """
    Live ``newHeads`` registration on one connection.

    Exposes two independent event sources:

    - ``next_header()`` yields headers in the order the node announced them.
      The stream is unbounded and cannot be restarted; gaps are not detected.
    - ``err()`` is a future that resolves to at most one ``SubscriptionError``
      once the subscription becomes unusable.

    Headers that arrived before a failure are delivered first: the error is
    published only after the consumer has drained the header queue.
    """

    def __init__(self, subscription_id: str):
        self.subscription_id = subscription_id
        self._headers: "asyncio.Queue[BlockHeader]" = asyncio.Queue()
        self._err: "asyncio.Future[SubscriptionError]" = asyncio.get_running_loop().create_future()
        self._closing = False

    def __repr__(self) -> str:
        return f"HeadSubscription(id={self.subscription_id!r}, pending={self._headers.qsize()})"

    @property
    def closed(self) -> bool:
        return self._closing or self._err.done()

    def err(self) -> "asyncio.Future[SubscriptionError]":
        """Future resolving to the terminal error of this subscription."""
        return self._err

    async def next_header(self) -> BlockHeader:
        """Wait for the next header announced by the node."""
        header = await self._headers.get()
        self._headers.task_done()
        return header

    def deliver(self, header: BlockHeader) -> None:
        """Queue a header; ignored once the subscription is failing."""
        if self.closed:
            logger.debug("Dropping header for closed subscription",
                         subscription=self.subscription_id,
                         number=header.number_str)
            return
        self._headers.put_nowait(header)

    async def fail(self, error: SubscriptionError) -> None:
        """Publish the terminal error after queued headers were consumed."""
        if self.closed:
            return
        self._closing = True
        await self._headers.join()
        self.set_error(error)

    def set_error(self, error: SubscriptionError) -> None:
        """Publish the terminal error immediately."""
        self._closing = True
        if not self._err.done():
            self._err.set_result(error)
