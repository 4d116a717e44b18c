# DevinRelay/devin_relay/llm/__init__.py
# @ai-rules:
# 1. [Pattern]: Lazy import -- httpx is loaded only when a client is actually created.
# 2. [Constraint]: This is the ONLY entry point. Consumers import from .llm, never from .llm.gemini_client.
"""
Reply generation: Gemini client factory and re-exports.

Usage:
    from .llm import create_client, ResponseGenerator
    generator = ResponseGenerator(create_client(settings))
"""
from __future__ import annotations

from typing import TYPE_CHECKING

from .prompts import PERSONA_PROMPT, build_persona_prompt
from .responder import MAX_RETRY_COUNT, ResponseGenerator
from .types import EscalationGate, GenerationPort, ProgressCallback

if TYPE_CHECKING:
    from ..config import Settings

__all__ = [
    "create_client",
    "EscalationGate",
    "GenerationPort",
    "MAX_RETRY_COUNT",
    "PERSONA_PROMPT",
    "ProgressCallback",
    "ResponseGenerator",
    "build_persona_prompt",
]


def create_client(settings: "Settings") -> GenerationPort:
    """Factory: create the Gemini REST client from resolved settings."""
    from .gemini_client import GeminiClient
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model_name=settings.gemini_model,
        api_url=settings.gemini_api_url,
    )
