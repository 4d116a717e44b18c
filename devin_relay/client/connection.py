# DevinRelay/devin_relay/client/connection.py
# @ai-rules:
# 1. [Constraint]: ONLY this class writes self._state and self._ws. Sender/dispatcher read them via properties.
# 2. [Pattern]: run() is an explicit reconnect loop: connect -> receive until close -> sleep RECONNECT_DELAY -> repeat.
#    Unbounded, fixed delay, no backoff. Exits only after terminate().
# 3. [Pattern]: On open: state OPEN, send subscribe_devin, start keepalive task. On close: cancel keepalive, DISCONNECTED.
# 4. [Gotcha]: Keepalive re-checks state before every ping. No pings while CONNECTING/CLOSING/DISCONNECTED.
# 5. [Pattern]: Received frames go onto self._inbound. One consumer task feeds them to the handler in order.
# 6. [Gotcha]: A failed connect attempt is logged as an error and handled exactly like a close.
"""
ConnectionManager -- lifecycle of the Devin session WebSocket.

Owns the single live channel, the keepalive timer, the reconnect loop,
and the inbound frame queue that MessageDispatcher drains.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import websockets

from ..config import DEFAULT_KEEPALIVE_INTERVAL, DEFAULT_RECONNECT_DELAY
from ..models import ConnectionState
from ..protocol import PingFrame, SubscribeFrame
from ..state.history import HistoryBuffer
from .sender import OutboundSender

logger = logging.getLogger(__name__)

Connector = Callable[[str], Awaitable[Any]]
MessageHandler = Callable[[Any], Awaitable[None]]


async def _websockets_connector(url: str) -> Any:
    # Keepalive is the application-level ping frame; protocol pings are off.
    return await websockets.connect(url, ping_interval=None, close_timeout=5)


class ConnectionManager:
    """WebSocket client to a Devin session event stream, with keepalive and reconnect."""

    def __init__(
        self,
        url: str,
        history: Optional[HistoryBuffer] = None,
        connector: Optional[Connector] = None,
        keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    ):
        self.url = url
        self._connector = connector or _websockets_connector
        self._keepalive_interval = keepalive_interval
        self._reconnect_delay = reconnect_delay
        self._ws: Optional[Any] = None
        self._state = ConnectionState.DISCONNECTED
        self._keepalive_task: Optional[asyncio.Task] = None
        self._inbound: asyncio.Queue = asyncio.Queue()
        self._handler: Optional[MessageHandler] = None
        self._terminated = asyncio.Event()
        self._connect_attempts = 0
        self.sender = OutboundSender(self, history)
        logger.info(f"ConnectionManager initialized (WS: {url})")

    # -----------------------------------------------------------------
    # Read-only views
    # -----------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def channel(self) -> Optional[Any]:
        return self._ws

    @property
    def terminated(self) -> bool:
        return self._terminated.is_set()

    @property
    def connect_attempts(self) -> int:
        return self._connect_attempts

    def set_message_handler(self, handler: MessageHandler) -> None:
        self._handler = handler

    # -----------------------------------------------------------------
    # Lifecycle transitions
    # -----------------------------------------------------------------

    async def connect(self) -> bool:
        """Open the channel once. Returns True if the channel reached OPEN."""
        if self._state not in (ConnectionState.DISCONNECTED, ConnectionState.CLOSING):
            logger.warning(f"connect() ignored in state {self._state.value}")
            return False

        self._state = ConnectionState.CONNECTING
        self._connect_attempts += 1
        logger.info(f"Connecting to {self.url}...")
        try:
            ws = await self._connector(self.url)
        except Exception as e:
            logger.error(f"WebSocket error: {e.__class__.__name__}: {e}")
            self._on_close(None, str(e))
            return False

        if self._terminated.is_set():
            await ws.close()
            self._on_close(None, "terminated while connecting")
            return False

        self._ws = ws
        await self._on_open()
        return True

    async def _on_open(self) -> None:
        self._state = ConnectionState.OPEN
        logger.info("WebSocket connected")
        if await self.sender.send(SubscribeFrame()):
            logger.info("subscribe_devin sent")
        self._keepalive_task = asyncio.create_task(self._keepalive())

    def _on_close(self, code: Optional[int], reason: str) -> None:
        self._cancel_keepalive()
        self._ws = None
        self._state = ConnectionState.DISCONNECTED
        logger.info(f"WebSocket closed (code: {code}, reason: {reason})")

    def _cancel_keepalive(self) -> None:
        if self._keepalive_task is not None:
            self._keepalive_task.cancel()
            self._keepalive_task = None

    async def _keepalive(self) -> None:
        """Send ping every keepalive_interval seconds while OPEN."""
        while True:
            await asyncio.sleep(self._keepalive_interval)
            if self._state is ConnectionState.OPEN:
                await self.sender.send(PingFrame())

    async def terminate(self) -> None:
        """Terminal shutdown: close the channel and stop reconnecting."""
        if self._terminated.is_set():
            return
        logger.info("Terminating connection")
        self._terminated.set()
        self._state = ConnectionState.CLOSING
        self._cancel_keepalive()
        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as e:
                logger.debug(f"Error while closing WebSocket: {e}")

    # -----------------------------------------------------------------
    # Main loop
    # -----------------------------------------------------------------

    async def _receive(self, ws: Any) -> None:
        """Queue frames until the channel closes, then run close handling."""
        try:
            async for raw in ws:
                self._inbound.put_nowait(raw)
        except websockets.exceptions.ConnectionClosed as e:
            logger.error(f"WebSocket error: {e}")
        finally:
            self._on_close(getattr(ws, "close_code", None), getattr(ws, "close_reason", "") or "")

    async def _consume(self) -> None:
        """Single consumer: hand queued frames to the message handler one at a time."""
        while True:
            raw = await self._inbound.get()
            try:
                await self._handler(raw)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Message handler failed")

    async def _wait_terminated(self, timeout: float) -> bool:
        try:
            await asyncio.wait_for(self._terminated.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    async def run(self) -> None:
        """Connect and keep reconnecting until terminate() is called."""
        if self._handler is None:
            raise RuntimeError("No message handler registered")

        consumer = asyncio.create_task(self._consume())
        try:
            while not self._terminated.is_set():
                if await self.connect():
                    await self._receive(self._ws)
                if self._terminated.is_set():
                    break
                logger.info(f"Reconnecting in {self._reconnect_delay}s...")
                if await self._wait_terminated(self._reconnect_delay):
                    break
        finally:
            consumer.cancel()
            try:
                await consumer
            except asyncio.CancelledError:
                pass
            self._cancel_keepalive()
            if self._ws is not None:
                await self._ws.close()
                self._ws = None
            logger.info("ConnectionManager stopped")
