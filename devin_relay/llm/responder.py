# DevinRelay/devin_relay/llm/responder.py
# @ai-rules:
# 1. [Pattern]: generate() is an explicit state loop (ATTEMPTING -> EXHAUSTED -> SUCCESS/GAVE_UP). No recursion.
# 2. [Constraint]: 1 initial call + MAX_RETRY_COUNT retries = 11 calls before each escalation. No delay between attempts.
# 3. [Pattern]: RETRY from the gate resets the attempt counter to 0. ABORT returns None (absence, not an exception).
# 4. [Gotcha]: Missing credential raises ConfigurationError BEFORE the first attempt. It is not retried.
# 5. [Pattern]: on_progress receives a dict per attempt/failure/escalation/outcome. Logged regardless.
# 6. [Constraint]: Loop state is LOCAL to each generate() call. Replies overlap; last_state only records the latest outcome.
"""
ResponseGenerator -- persona prompt + bounded retry + human escalation.

Sits between MessageDispatcher (which owns the history) and the
GenerationPort (Gemini). Knows nothing about WebSockets.
"""
from __future__ import annotations

import logging
from typing import Any, Optional

from ..errors import ConfigurationError, GenerationError
from ..models import EscalationDecision, GenerationState
from ..state.history import HistoryBuffer
from .prompts import build_persona_prompt
from .types import EscalationGate, GenerationPort, ProgressCallback

logger = logging.getLogger(__name__)

MAX_RETRY_COUNT = 10


class ResponseGenerator:
    """Builds prompts from history and drives the retry/escalation state machine."""

    def __init__(
        self,
        client: GenerationPort,
        gate: Optional[EscalationGate] = None,
        on_progress: Optional[ProgressCallback] = None,
        max_retries: int = MAX_RETRY_COUNT,
    ):
        self._client = client
        self._gate = gate
        self._on_progress = on_progress
        self._max_retries = max_retries
        self.last_state: Optional[GenerationState] = None

    def set_escalation_gate(self, gate: EscalationGate) -> None:
        self._gate = gate

    def set_progress_callback(self, cb: ProgressCallback) -> None:
        self._on_progress = cb

    @property
    def max_attempts(self) -> int:
        return self._max_retries + 1

    def build_prompt(self, history: HistoryBuffer) -> str:
        return build_persona_prompt(history.format_for_prompt())

    async def respond(self, history: HistoryBuffer) -> Optional[str]:
        """Generate a reply to the current history."""
        return await self.generate(self.build_prompt(history))

    async def _notify(self, stage: str, **fields: Any) -> None:
        if self._on_progress:
            await self._on_progress({"actor": "gemini", "stage": stage, **fields})

    async def _escalate(self, attempts: int) -> EscalationDecision:
        if self._gate is None:
            logger.warning("No escalation gate configured -- giving up")
            return EscalationDecision.ABORT
        return await self._gate.decide(attempts)

    async def generate(self, prompt: str) -> Optional[str]:
        """Return generated text, or None if the operator gave up after exhaustion."""
        if not self._client.has_credential:
            raise ConfigurationError("GEMINI_API_KEY environment variable is not set")

        attempt = 0
        text: Optional[str] = None
        state = GenerationState.ATTEMPTING

        while True:
            if state is GenerationState.ATTEMPTING:
                logger.info(f"Calling Gemini (attempt {attempt + 1}/{self.max_attempts})")
                await self._notify("attempt", attempt=attempt + 1, max_attempts=self.max_attempts)
                try:
                    text = await self._client.generate(prompt)
                except GenerationError as e:
                    logger.warning(f"Gemini call failed (attempt {attempt + 1}/{self.max_attempts}): {e}")
                    await self._notify("failure", attempt=attempt + 1, max_attempts=self.max_attempts, error=str(e))
                    if attempt < self._max_retries:
                        attempt += 1
                    else:
                        state = GenerationState.EXHAUSTED
                    continue
                state = GenerationState.SUCCESS

            elif state is GenerationState.EXHAUSTED:
                logger.error(f"Gemini failed after {self.max_attempts} attempts -- escalating to operator")
                await self._notify("exhausted", attempts=self.max_attempts)
                decision = await self._escalate(self.max_attempts)
                if decision is EscalationDecision.RETRY:
                    logger.info("Operator requested retry -- resetting attempt counter")
                    await self._notify("reset")
                    attempt = 0
                    state = GenerationState.ATTEMPTING
                else:
                    state = GenerationState.GAVE_UP

            elif state is GenerationState.SUCCESS:
                logger.info(f"Gemini succeeded (attempt {attempt + 1}): {len(text)} chars")
                await self._notify("success", attempt=attempt + 1, text=text)
                self.last_state = state
                return text

            else:
                logger.info("Reply generation abandoned by operator")
                await self._notify("gave_up")
                self.last_state = state
                return None
