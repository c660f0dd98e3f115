"""Ethereum JSON-RPC client over WebSocket."""

import asyncio
import json
from typing import Any, Dict, List, Optional, Set

import structlog
import websockets
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from eth_head_watcher import __version__
from eth_head_watcher.exceptions import RPCConnectionError, RPCError, SubscriptionError
from eth_head_watcher.models.config import WatcherConfig
from eth_head_watcher.models.headers import BlockHeader, HeaderDecodeError, parse_quantity
from eth_head_watcher.core.subscription import HeadSubscription

logger = structlog.get_logger(__name__)


class EthWebSocketClient:
    """JSON-RPC 2.0 client bound to one WebSocket connection.

    Requests are correlated with replies by id; ``eth_subscription``
    notifications are routed to their ``HeadSubscription``. A background
    reader task owns the socket's receive side.
    """

    def __init__(self, config: WatcherConfig):
        self.config = config
        self.url = config.sepolia_rpc_url
        self.ws = None

        self._next_id = 1
        self._pending: Dict[int, asyncio.Future] = {}
        self._subscriptions: Dict[str, HeadSubscription] = {}
        self._subscribe_requests: Set[int] = set()
        self._reader: Optional[asyncio.Task] = None
        self._closed_reason: Optional[str] = None

        logger.debug("Ethereum RPC client initialized", host=config.endpoint_host)

    @property
    def connected(self) -> bool:
        return self.ws is not None and self._closed_reason is None

    async def dial(self) -> "EthWebSocketClient":
        """
        Open the WebSocket connection and start the reader.

        Raises:
            RPCConnectionError: malformed URL, refused connection, rejected
                handshake (e.g. bad API key) or open timeout.
        """
        try:
            self.ws = await websockets.connect(
                self.url,
                open_timeout=self.config.rpc_connect_timeout,
                max_size=self.config.rpc_max_message_size,
                user_agent_header=f"eth-head-watcher/{__version__}",
            )
        except InvalidURI as e:
            raise RPCConnectionError(f"invalid endpoint URL: {e}") from e
        except InvalidHandshake as e:
            raise RPCConnectionError(f"WebSocket handshake failed: {e}") from e
        except (OSError, asyncio.TimeoutError) as e:
            raise RPCConnectionError(f"cannot connect to {self.config.endpoint_host}: {str(e) or type(e).__name__}") from e

        self._closed_reason = None
        self._reader = asyncio.create_task(self._read_loop(), name="eth-rpc-reader")
        logger.debug("Connected to RPC endpoint", host=self.config.endpoint_host)
        return self

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """Send a request and wait for its reply."""
        if not self.connected:
            raise RPCConnectionError(self._closed_reason or "client is not connected")
        if params is None:
            params = []

        request_id = self._next_id
        self._next_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": request_id,
            "method": method,
            "params": params,
        }

        reply = asyncio.get_running_loop().create_future()
        self._pending[request_id] = reply
        if method == "eth_subscribe":
            self._subscribe_requests.add(request_id)
        try:
            await self.ws.send(json.dumps(payload))
            data = await asyncio.wait_for(reply, timeout=self.config.rpc_request_timeout)
        except asyncio.TimeoutError as e:
            raise RPCError(f"no reply to {method} within {self.config.rpc_request_timeout}s",
                           method=method) from e
        except ConnectionClosed as e:
            raise RPCConnectionError(f"connection closed: {e}") from e
        finally:
            self._pending.pop(request_id, None)
            self._subscribe_requests.discard(request_id)

        error = data.get("error")
        if error is not None:
            if isinstance(error, dict):
                raise RPCError(error.get("message", "Unknown RPC error"),
                               code=error.get("code", -1), method=method)
            raise RPCError(str(error), method=method)
        return data.get("result")

    async def subscribe_new_heads(self) -> HeadSubscription:
        """
        Register for push notifications of new block headers.

        Raises:
            SubscriptionError: the node rejected the request or the
                connection failed before it answered.
        """
        try:
            subscription_id = await self.call("eth_subscribe", ["newHeads"])
        except (RPCError, RPCConnectionError) as e:
            raise SubscriptionError(f"eth_subscribe newHeads failed: {e}") from e

        if not isinstance(subscription_id, str) or not subscription_id:
            raise SubscriptionError(f"unexpected subscription id: {subscription_id!r}")

        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            raise SubscriptionError(f"subscription {subscription_id} ended before it was delivered")
        logger.debug("Subscribed to new heads", subscription=subscription_id)
        return subscription

    async def unsubscribe(self, subscription: HeadSubscription) -> bool:
        """Cancel a subscription on the node. Returns the node's answer."""
        self._subscriptions.pop(subscription.subscription_id, None)
        subscription.set_error(SubscriptionError("unsubscribed"))
        if not self.connected:
            return False
        return bool(await self.call("eth_unsubscribe", [subscription.subscription_id]))

    async def chain_id(self) -> int:
        return parse_quantity(await self.call("eth_chainId"))

    async def block_number(self) -> int:
        return parse_quantity(await self.call("eth_blockNumber"))

    async def test_connection(self) -> bool:
        """Test RPC connection."""
        try:
            if not self.connected:
                await self.dial()
            chain_id = await self.chain_id()
            head = await self.block_number()
            logger.info("RPC connection successful",
                        chain_id=chain_id,
                        block_number=str(head))
            return True
        except (RPCConnectionError, RPCError, HeaderDecodeError) as e:
            logger.error("RPC connection failed", error=str(e))
            return False

    async def _read_loop(self) -> None:
        """Receive frames until the connection ends, then fail all waiters."""
        reason = None
        try:
            async for message in self.ws:
                try:
                    await self._dispatch(json.loads(message))
                except (TypeError, ValueError) as e:
                    reason = f"undecodable frame from node: {e}"
                    logger.debug("Dropping connection after bad frame", error=str(e))
                    await self.ws.close(code=1007, reason="invalid frame")
                    break
        except ConnectionClosed as e:
            reason = str(e)

        if reason is None:
            # Iteration ends quietly on a normal close frame.
            reason = f"connection closed by node: {self.ws.close_code} {self.ws.close_reason or ''}".strip()

        self._closed_reason = reason
        logger.debug("RPC reader stopped", reason=reason)

        for reply in list(self._pending.values()):
            if not reply.done():
                reply.set_exception(RPCConnectionError(reason))
        self._pending.clear()

        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        await asyncio.gather(*(sub.fail(SubscriptionError(reason)) for sub in subscriptions))

    async def _dispatch(self, data: Any) -> None:
        if isinstance(data, list):
            for item in data:
                await self._dispatch(item)
            return
        if not isinstance(data, dict):
            logger.debug("Ignoring unexpected message", message=repr(data)[:200])
            return

        if data.get("method") == "eth_subscription":
            params = data.get("params")
            if not isinstance(params, dict):
                params = {}
            subscription_id = params.get("subscription")
            if not isinstance(subscription_id, str):
                raise ValueError(f"invalid subscription id: {subscription_id!r}")
            subscription = self._subscriptions.get(subscription_id)
            if subscription is None:
                logger.debug("Notification for unknown subscription",
                             subscription=subscription_id)
                return
            try:
                header = BlockHeader.from_rpc(params.get("result"))
            except HeaderDecodeError as e:
                self._subscriptions.pop(subscription.subscription_id, None)
                await subscription.fail(SubscriptionError(f"cannot decode header: {e}"))
                return
            subscription.deliver(header)
            return

        request_id = data.get("id")
        if request_id is not None and not isinstance(request_id, (int, float, str)):
            raise ValueError(f"invalid reply id: {request_id!r}")
        if request_id in self._subscribe_requests:
            # Register before the caller resumes so no notification is lost.
            self._subscribe_requests.discard(request_id)
            result = data.get("result")
            if data.get("error") is None and isinstance(result, str) and result:
                self._subscriptions.setdefault(result, HeadSubscription(result))

        reply = self._pending.get(request_id)
        if reply is not None and not reply.done():
            reply.set_result(data)
        else:
            logger.debug("Unmatched reply", id=request_id)

    async def close(self) -> None:
        """Close the connection and stop the reader."""
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug("RPC reader ended with error", error=str(e))
            self._reader = None
        if self.ws is not None:
            await self.ws.close()
            self.ws = None
        logger.debug("RPC client connection closed")
