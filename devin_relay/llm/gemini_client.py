# DevinRelay/devin_relay/llm/gemini_client.py
# @ai-rules:
# 1. [Constraint]: Only import httpx inside this file. Callers see str or GenerationError, never httpx types.
# 2. [Pattern]: One AsyncClient per call (same as Headhunter.poll_cycle). No connection reuse across attempts.
# 3. [Gotcha]: API key goes in the `key` query param, not a header. Never log the full URL.
# 4. [Gotcha]: Empty text counts as a failure -- candidates[0].content.parts[0].text must be truthy.
"""
GeminiClient -- GenerationPort over the Gemini generateContent REST API.

Stateless: every call is a single POST with the full prompt.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Optional

import httpx

from ..config import DEFAULT_GEMINI_API_URL, DEFAULT_GEMINI_MODEL
from ..errors import ConfigurationError, GenerationError

logger = logging.getLogger(__name__)


class GeminiClient:
    """Gemini REST adapter implementing GenerationPort."""

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = DEFAULT_GEMINI_MODEL,
        api_url: str = DEFAULT_GEMINI_API_URL,
        max_output_tokens: int = 8192,
        temperature: float = 1.0,
        timeout: float = 60.0,
    ):
        self._api_key = api_key
        self._model_name = model_name
        self._endpoint = f"{api_url.rstrip('/')}/{model_name}:generateContent"
        self._max_output_tokens = max_output_tokens
        self._temperature = temperature
        self._timeout = timeout
        logger.info(f"GeminiClient initialized: {model_name}")

    @property
    def has_credential(self) -> bool:
        return bool(self._api_key)

    @property
    def model_name(self) -> str:
        return self._model_name

    def _build_request(self, prompt: str) -> dict:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "maxOutputTokens": self._max_output_tokens,
                "temperature": self._temperature,
            },
        }

    @staticmethod
    def _extract_text(data: Any) -> Optional[str]:
        """Pull candidates[0].content.parts[0].text, or None if any level is missing."""
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None
        return text if isinstance(text, str) and text else None

    async def generate(self, prompt: str) -> str:
        if not self._api_key:
            raise ConfigurationError("GEMINI_API_KEY environment variable is not set")

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._endpoint,
                    params={"key": self._api_key},
                    json=self._build_request(prompt),
                )
        except httpx.HTTPError as e:
            raise GenerationError(f"Gemini request failed: {e.__class__.__name__}: {e}") from e

        if not 200 <= response.status_code < 300:
            raise GenerationError(
                f"Gemini API error: {response.status_code} {response.reason_phrase}",
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GenerationError("Gemini API returned a non-JSON body") from e

        text = self._extract_text(data)
        if text is None:
            logger.warning(f"Unexpected Gemini response structure: {json.dumps(data, ensure_ascii=False)[:500]}")
            raise GenerationError("Gemini API response is missing candidates[0].content.parts[0].text")
        return text.strip()
