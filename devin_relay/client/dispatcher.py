# DevinRelay/devin_relay/client/dispatcher.py
# @ai-rules:
# 1. [Constraint]: Malformed frames are dropped SILENTLY (debug log only). No history mutation, no send.
# 2. [Pattern]: devin_message -> record remote -> sentinel check -> build prompt NOW -> spawn reply task.
# 3. [Pattern]: handle() returns once the synchronous part is done. Replies run as tracked tasks, so later frames
#    can be recorded before an earlier reply is sent. Reply order vs. inbound order is NOT guaranteed.
# 4. [Gotcha]: Auto-replies are NOT recorded at send time. The server echoes them back as user_message events.
# 5. [Pattern]: close() cancels pending replies. Termination never drains.
"""
MessageDispatcher -- inbound frame classification and the auto-reply loop.

Registered as ConnectionManager's message handler. Drives HistoryBuffer,
ResponseGenerator and OutboundSender.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from ..errors import ProtocolParseError
from ..llm.responder import ResponseGenerator
from ..models import Sender
from ..protocol import DevinMessageEvent, UserMessageEvent, parse_inbound
from ..state.history import HistoryBuffer
from .sender import OutboundSender

logger = logging.getLogger(__name__)

TERMINATION_SENTINEL = "Session terminated"


class MessageDispatcher:
    """Classifies raw inbound frames and reacts to them."""

    def __init__(
        self,
        history: HistoryBuffer,
        generator: ResponseGenerator,
        sender: OutboundSender,
        on_terminate: Callable[[], Awaitable[None]],
        sentinel: str = TERMINATION_SENTINEL,
        auto_reply: bool = True,
    ):
        self._history = history
        self._generator = generator
        self._sender = sender
        self._on_terminate = on_terminate
        self._sentinel = sentinel
        self._auto_reply = auto_reply
        self._reply_tasks: set[asyncio.Task] = set()
        self.terminated = False

    @property
    def pending_replies(self) -> int:
        return len(self._reply_tasks)

    async def handle(self, raw: str | bytes) -> None:
        """Process one raw inbound frame."""
        if self.terminated:
            return
        try:
            event = parse_inbound(raw)
        except ProtocolParseError as e:
            logger.debug(f"Dropped malformed frame: {e}")
            return

        if isinstance(event, DevinMessageEvent):
            await self._on_devin_message(event)
        elif isinstance(event, UserMessageEvent):
            self._on_user_message(event)

    async def _on_devin_message(self, event: DevinMessageEvent) -> None:
        logger.info(
            f"Devin message received [{event.timestamp}] "
            f"(acus_to_refund={event.refund_units}): {event.message}"
        )
        self._history.record(Sender.REMOTE, event.message, event.timestamp)

        if event.message == self._sentinel:
            logger.info("Session terminated message received -- closing connection and exiting")
            self.terminated = True
            await self.close()
            await self._on_terminate()
            return

        if not self._auto_reply:
            return
        # Prompt is fixed at arrival time; frames handled while the reply is in flight don't leak into it.
        prompt = self._generator.build_prompt(self._history)
        self.spawn(self._reply(prompt))

    def _on_user_message(self, event: UserMessageEvent) -> None:
        logger.info(f"User message received [{event.timestamp}] (user={event.user_label}): {event.message}")
        self._history.record(Sender.LOCAL, event.message, event.timestamp)

    async def _reply(self, prompt: str) -> None:
        text = await self._generator.generate(prompt)
        if not text:
            logger.info("No auto-reply sent (generation abandoned)")
            return
        logger.info(f"Auto-reply generated: {text}")
        await self._sender.send_user_message(text)

    def spawn(self, coro: Awaitable[None]) -> asyncio.Task:
        """Run *coro* as a tracked reply task."""
        task = asyncio.ensure_future(coro)
        self._reply_tasks.add(task)
        task.add_done_callback(self._on_reply_done)
        return task

    def _on_reply_done(self, task: asyncio.Task) -> None:
        self._reply_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Reply task failed", exc_info=exc)

    async def wait_for_replies(self) -> None:
        """Wait until every in-flight reply task has finished."""
        while self._reply_tasks:
            await asyncio.gather(*list(self._reply_tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel in-flight reply tasks without waiting for them to drain."""
        for task in list(self._reply_tasks):
            task.cancel()
        self._reply_tasks.clear()
