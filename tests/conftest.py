"""Pytest configuration and fixtures for watcher tests."""

import asyncio
import json
import threading
from typing import Any, Dict, List, Optional, Sequence

import pytest
import websockets

from eth_head_watcher.models.config import WatcherConfig


SUBSCRIPTION_ID = "0x9cef478923ff08bf67fde6c64013158d"
SEPOLIA_CHAIN_ID = 11155111


# ============================================================================
# MOCK NODE
# ============================================================================

def new_heads_notification(number: int, subscription_id: str = SUBSCRIPTION_ID) -> Dict[str, Any]:
    """Build an eth_subscription frame as a geth node sends it."""
    return {
        "jsonrpc": "2.0",
        "method": "eth_subscription",
        "params": {
            "subscription": subscription_id,
            "result": {
                "number": hex(number),
                "hash": "0x" + f"{number:064x}"[-64:],
                "parentHash": "0x" + f"{max(number - 1, 0):064x}"[-64:],
                "timestamp": hex(1_700_000_000 + number),
                "gasLimit": "0x1c9c380",
                "gasUsed": "0x5208",
                "baseFeePerGas": "0x7",
                "miner": "0x0000000000000000000000000000000000000000",
            },
        },
    }


class MockNode:
    """
    Ethereum-like WebSocket node running on its own thread and event loop.

    On ``eth_subscribe`` it confirms the subscription, pushes one newHeads
    notification per entry of ``frames`` (ints become headers, dicts and
    strings are sent as-is) and then closes with ``close_reason`` when set.
    """

    def __init__(self,
                 frames: Sequence[Any] = (),
                 close_reason: Optional[str] = "connection reset",
                 subscribe_error: Optional[Dict[str, Any]] = None,
                 silent_methods: Sequence[str] = (),
                 block_number: int = 5_000_000):
        self.frames = list(frames)
        self.close_reason = close_reason
        self.subscribe_error = subscribe_error
        self.silent_methods = set(silent_methods)
        self.block_number = block_number

        self.requests: List[Dict[str, Any]] = []
        self.connections = 0
        self.port: Optional[int] = None

        self._loop = asyncio.new_event_loop()
        self._ready = threading.Event()
        self._stop: Optional[asyncio.Event] = None
        self._thread = threading.Thread(target=self._run, name="mock-node", daemon=True)

    @property
    def url(self) -> str:
        return f"ws://127.0.0.1:{self.port}"

    def start(self) -> "MockNode":
        self._thread.start()
        if not self._ready.wait(timeout=5):
            raise RuntimeError("mock node did not start")
        return self

    def stop(self) -> None:
        if not self._thread.is_alive():
            return
        if self._stop is not None:
            self._loop.call_soon_threadsafe(self._stop.set)
        self._thread.join(timeout=5)

    def methods(self) -> List[str]:
        return [request["method"] for request in self.requests]

    def _run(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_until_complete(self._serve())
        finally:
            self._loop.close()

    async def _serve(self) -> None:
        self._stop = asyncio.Event()
        async with websockets.serve(self._handle, "127.0.0.1", 0) as server:
            self.port = list(server.sockets)[0].getsockname()[1]
            self._ready.set()
            await self._stop.wait()

    async def _reply(self, ws, request_id: Any, result: Any = None, error: Any = None) -> None:
        message = {"jsonrpc": "2.0", "id": request_id}
        if error is not None:
            message["error"] = error
        else:
            message["result"] = result
        await ws.send(json.dumps(message))

    async def _handle(self, ws) -> None:
        self.connections += 1
        async for raw in ws:
            request = json.loads(raw)
            self.requests.append(request)
            method = request.get("method")

            if method in self.silent_methods:
                continue

            if method == "eth_subscribe":
                if self.subscribe_error is not None:
                    await self._reply(ws, request["id"], error=self.subscribe_error)
                    continue
                await self._reply(ws, request["id"], result=SUBSCRIPTION_ID)
                for frame in self.frames:
                    if isinstance(frame, int):
                        frame = new_heads_notification(frame)
                    await ws.send(frame if isinstance(frame, str) else json.dumps(frame))
                if self.close_reason is not None:
                    await ws.close(code=1011, reason=self.close_reason)
                    return
            elif method == "eth_unsubscribe":
                await self._reply(ws, request["id"], result=True)
            elif method == "eth_chainId":
                await self._reply(ws, request["id"], result=hex(SEPOLIA_CHAIN_ID))
            elif method == "eth_blockNumber":
                await self._reply(ws, request["id"], result=hex(self.block_number))
            else:
                await self._reply(ws, request["id"], error={
                    "code": -32601,
                    "message": f"the method {method} does not exist/is not available",
                })


@pytest.fixture
def mock_node():
    """Factory starting mock nodes; all are stopped at teardown."""
    nodes = []

    def _start(**kwargs) -> MockNode:
        node = MockNode(**kwargs).start()
        nodes.append(node)
        return node

    yield _start

    for node in nodes:
        node.stop()


# ============================================================================
# CONFIG FIXTURES
# ============================================================================

@pytest.fixture
def make_config():
    """Build a WatcherConfig without reading the environment's .env file."""
    def _make(url: str = "ws://127.0.0.1:8546", **overrides) -> WatcherConfig:
        settings = {
            "rpc_connect_timeout": 2.0,
            "rpc_request_timeout": 2.0,
        }
        settings.update(overrides)
        return WatcherConfig(_env_file=None, sepolia_rpc_url=url, **settings)

    return _make


@pytest.fixture
def config(make_config):
    """Default test configuration."""
    return make_config()


# ============================================================================
# SAMPLE DATA FIXTURES
# ============================================================================

@pytest.fixture
def sample_header_payload():
    """newHeads result object as returned by a Sepolia geth node."""
    return {
        "baseFeePerGas": "0x9",
        "difficulty": "0x0",
        "extraData": "0xd883010d0e846765746888676f312e32312e36856c696e7578",
        "gasLimit": "0x1c9c380",
        "gasUsed": "0xa410",
        "hash": "0x1a2f9c5e04f1cd34a1c2a9d5e3bdd4a2b3ea7a2f7b6c0f9e1e8d0c4b5a6f7e8d",
        "logsBloom": "0x" + "00" * 256,
        "miner": "0x4838b106fce9647bdf1e7877bf73ce8b0bad5f97",
        "mixHash": "0x" + "ab" * 32,
        "nonce": "0x0000000000000000",
        "number": "0x5b8d80",
        "parentHash": "0x8e38b4dbf6b11fcc3b9dee84fb7986e29ca0a02cecd8977c161ff7333329681e",
        "receiptsRoot": "0x" + "cd" * 32,
        "sha3Uncles": "0x1dcc4de8dec75d7aab85b567b6ccd41ad312451b948a7413f0a142fd40d49347",
        "stateRoot": "0x" + "ef" * 32,
        "timestamp": "0x65a5f2c0",
        "transactionsRoot": "0x" + "12" * 32,
    }
