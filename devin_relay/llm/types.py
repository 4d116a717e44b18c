# DevinRelay/devin_relay/llm/types.py
# @ai-rules:
# 1. [Constraint]: No httpx imports here. Ports are plain Protocols so tests can pass stubs.
# 2. [Pattern]: GenerationPort.generate() returns text or raises GenerationError. Never returns None.
# 3. [Pattern]: EscalationGate is how the retry loop talks to a human. Console implements it; tests stub it.
"""
Provider-agnostic generation types and ports.

ResponseGenerator depends only on these Protocols; GeminiClient and
OperatorConsole are the production implementations.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

from ..models import EscalationDecision

ProgressCallback = Callable[[dict[str, Any]], Awaitable[None]]


class GenerationPort(Protocol):
    """Text-generation capability: prompt in, text out (or GenerationError)."""

    @property
    def has_credential(self) -> bool: ...

    async def generate(self, prompt: str) -> str: ...


class EscalationGate(Protocol):
    """Blocks until a human decides what to do after the retry budget is spent."""

    async def decide(self, attempts: int) -> EscalationDecision: ...
