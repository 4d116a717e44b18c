# DevinRelay/devin_relay/console.py
# @ai-rules:
# 1. [Pattern]: StdinReader reads on a DAEMON thread and hands lines to the loop via call_soon_threadsafe.
#    A blocked readline() never holds up process exit.
# 2. [Pattern]: OperatorConsole is the only stdin consumer. A line goes to a pending escalation first,
#    otherwise it is a manual message (or "exit").
# 3. [Constraint]: decide() is serialized by _gate_lock -- one escalation prompt at a time.
# 4. [Gotcha]: Manual messages run via dispatcher.spawn() so the read loop stays free to answer escalations.
# 5. [Gotcha]: stdin EOF -> pending and future escalations resolve to ABORT.
"""
Operator console -- URL prompt, escalation decisions, manual message mode.

Implements EscalationGate for ResponseGenerator.
"""
from __future__ import annotations

import asyncio
import logging
import sys
import threading
from typing import IO, TYPE_CHECKING, Any, Optional

from .errors import ConfigurationError
from .models import EscalationDecision

if TYPE_CHECKING:
    from .client import RelayClient

logger = logging.getLogger(__name__)

EXIT_COMMAND = "exit"


class StdinReader:
    """Line reader that never blocks the event loop."""

    def __init__(self, stream: Optional[IO[str]] = None) -> None:
        self._stream = stream if stream is not None else sys.stdin
        self._queue: asyncio.Queue = asyncio.Queue()
        self._thread: Optional[threading.Thread] = None
        self.at_eof = False

    def start(self) -> None:
        if self._thread is not None:
            return
        loop = asyncio.get_running_loop()
        self._thread = threading.Thread(target=self._run, args=(loop,), name="stdin-reader", daemon=True)
        self._thread.start()

    def _run(self, loop: asyncio.AbstractEventLoop) -> None:
        try:
            for line in iter(self._stream.readline, ""):
                loop.call_soon_threadsafe(self._queue.put_nowait, line.rstrip("\r\n"))
            loop.call_soon_threadsafe(self._queue.put_nowait, None)
        except RuntimeError:
            # Loop already closed during shutdown.
            return

    async def readline(self) -> Optional[str]:
        """Next line without its newline, or None at EOF."""
        if self.at_eof:
            return None
        line = await self._queue.get()
        if line is None:
            self.at_eof = True
        return line


class OperatorConsole:
    """Human-in-the-loop surface for the relay."""

    def __init__(self, reader: StdinReader, out: Optional[IO[str]] = None) -> None:
        self._reader = reader
        self._out = out if out is not None else sys.stdout
        self._relay: Optional["RelayClient"] = None
        self._pending: Optional[asyncio.Future] = None
        self._gate_lock = asyncio.Lock()

    def attach(self, relay: "RelayClient") -> None:
        self._relay = relay

    def say(self, text: str) -> None:
        print(text, file=self._out, flush=True)

    @property
    def awaiting_decision(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def prompt_url(self) -> str:
        self.say("Enter WebSocket URL:")
        line = await self._reader.readline()
        if line is None or not line.strip():
            raise ConfigurationError("No WebSocket URL provided")
        return line.strip()

    # -----------------------------------------------------------------
    # EscalationGate
    # -----------------------------------------------------------------

    async def decide(self, attempts: int) -> EscalationDecision:
        async with self._gate_lock:
            if self._reader.at_eof:
                logger.warning("stdin closed -- cannot ask operator, giving up")
                return EscalationDecision.ABORT
            self._pending = asyncio.get_running_loop().create_future()
            self.say(f"\nGemini failed {attempts} times. Press Enter to retry, or type \"{EXIT_COMMAND}\" to give up:")
            try:
                return await self._pending
            finally:
                self._pending = None

    async def report_progress(self, update: dict[str, Any]) -> None:
        """ProgressCallback for ResponseGenerator."""
        stage = update.get("stage")
        if stage == "failure" and update["attempt"] < update["max_attempts"]:
            self.say(f"Retrying... ({update['attempt']}/{update['max_attempts'] - 1})")
        elif stage == "exhausted":
            self.say(f"Gemini failed after {update['attempts']} attempts")
        elif stage == "reset":
            self.say("Retry counter reset, resuming...")
        elif stage == "gave_up":
            self.say("Gave up on this reply")

    # -----------------------------------------------------------------
    # Manual message mode
    # -----------------------------------------------------------------

    async def run(self) -> None:
        """Read operator lines until EOF or "exit"."""
        if self._relay is None:
            raise RuntimeError("OperatorConsole.run() called before attach()")

        self.say("\n--- Message mode ---")
        self.say("Type a message and press Enter to send a generated reply.")
        self.say(f"Type \"{EXIT_COMMAND}\" to quit.\n")

        while True:
            line = await self._reader.readline()
            if line is None:
                logger.info("stdin closed -- manual message mode disabled")
                if self.awaiting_decision:
                    self._pending.set_result(EscalationDecision.ABORT)
                return

            command = line.strip()
            if self.awaiting_decision:
                decision = EscalationDecision.ABORT if command.lower() == EXIT_COMMAND else EscalationDecision.RETRY
                self._pending.set_result(decision)
                continue

            if command.lower() == EXIT_COMMAND:
                logger.info("Exit requested by operator")
                await self._relay.shutdown()
                return
            if command:
                self._relay.dispatcher.spawn(self._send_manual(command))

    async def _send_manual(self, typed: str) -> None:
        """Send a generated reply to the current history; fall back to the typed text."""
        reply = await self._relay.generator.respond(self._relay.history)
        if reply:
            self.say(f"Generated message: {reply}")
            await self._relay.sender.send_user_message(reply)
        else:
            self.say("Generation failed, sending the typed message instead")
            await self._relay.sender.send_user_message(typed)
