# DevinRelay/devin_relay/client/sender.py
# @ai-rules:
# 1. [Constraint]: send() never raises for channel state. Not OPEN -> log + return False.
# 2. [Pattern]: Reads state/channel from the owning ConnectionManager. Never stores its own ws reference.
# 3. [Gotcha]: send_user_message() builds a NEW UserMessageFrame per call -> fresh event_id, even for resends.
# 4. [Pattern]: record=True appends the sent text to history (local). Auto-replies leave it False; the server echo records them.
"""OutboundSender -- typed frame emission over the managed channel."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

import websockets

from ..models import ConnectionState, Sender
from ..protocol import OutboundFrame, UserMessageFrame

if TYPE_CHECKING:
    from ..state.history import HistoryBuffer
    from .connection import ConnectionManager

logger = logging.getLogger(__name__)


class OutboundSender:
    """Validates channel state and writes serialized frames to it."""

    def __init__(self, owner: "ConnectionManager", history: Optional["HistoryBuffer"] = None) -> None:
        self._owner = owner
        self._history = history

    async def send(self, frame: OutboundFrame) -> bool:
        ws = self._owner.channel
        if self._owner.state is not ConnectionState.OPEN or ws is None:
            logger.warning(f"WebSocket not connected -- dropping {frame.type} frame")
            return False

        data = frame.to_wire()
        try:
            await ws.send(data)
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning(f"Send failed, channel closed: {e}")
            return False

        if frame.type == "ping":
            logger.debug("Keepalive ping sent")
        else:
            logger.info(f"Sent: {data}")
        return True

    async def send_user_message(self, text: str, record: bool = False) -> bool:
        """Send *text* as a user_message frame. Optionally record it as a local history entry."""
        sent = await self.send(UserMessageFrame(message=text))
        if sent and record and self._history is not None:
            self._history.record(Sender.LOCAL, text)
        return sent
