# DevinRelay/devin_relay/client/__init__.py
# @ai-rules:
# 1. [Pattern]: create_relay() is the single wiring point. No module-level channel or history globals.
# 2. [Pattern]: dispatcher.on_terminate is wired to connection.terminate -- the sentinel path ends run().
"""WebSocket session client: connection lifecycle, outbound frames, inbound dispatch."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..config import DEFAULT_KEEPALIVE_INTERVAL, DEFAULT_RECONNECT_DELAY
from ..llm.responder import ResponseGenerator
from ..state.history import HistoryBuffer
from .connection import ConnectionManager, Connector
from .dispatcher import TERMINATION_SENTINEL, MessageDispatcher
from .sender import OutboundSender

__all__ = [
    "ConnectionManager", "MessageDispatcher", "OutboundSender", "RelayClient",
    "TERMINATION_SENTINEL", "create_relay",
]


@dataclass
class RelayClient:
    """Explicit client context: one history, one connection, one dispatcher."""

    history: HistoryBuffer
    generator: ResponseGenerator
    connection: ConnectionManager
    dispatcher: MessageDispatcher

    @property
    def sender(self) -> OutboundSender:
        return self.connection.sender

    async def run(self) -> None:
        try:
            await self.connection.run()
        finally:
            await self.dispatcher.close()

    async def shutdown(self) -> None:
        await self.dispatcher.close()
        await self.connection.terminate()


def create_relay(
    url: str,
    generator: ResponseGenerator,
    connector: Optional[Connector] = None,
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL,
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
) -> RelayClient:
    """Build and wire the relay components around a fresh HistoryBuffer."""
    history = HistoryBuffer()
    connection = ConnectionManager(
        url,
        history=history,
        connector=connector,
        keepalive_interval=keepalive_interval,
        reconnect_delay=reconnect_delay,
    )
    dispatcher = MessageDispatcher(history, generator, connection.sender, on_terminate=connection.terminate)
    connection.set_message_handler(dispatcher.handle)
    return RelayClient(history=history, generator=generator, connection=connection, dispatcher=dispatcher)
