# DevinRelay/devin_relay/config.py
# @ai-rules:
# 1. [Pattern]: Env read at call time (load_settings), not import time. .env is loaded by main.py before this runs.
# 2. [Constraint]: GEMINI_API_KEY is the only required setting. Missing -> ConfigurationError -> exit 1.
# 3. [Constraint]: Retry bound and history capacity are code constants (responder.py, history.py), not env.
"""Environment configuration for the relay client."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_KEEPALIVE_INTERVAL = 10.0
DEFAULT_RECONNECT_DELAY = 5.0


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings."""

    gemini_api_key: str
    gemini_api_url: str = DEFAULT_GEMINI_API_URL
    gemini_model: str = DEFAULT_GEMINI_MODEL
    websocket_url: Optional[str] = None
    keepalive_interval: float = DEFAULT_KEEPALIVE_INTERVAL
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY
    debug: bool = False


def load_settings() -> Settings:
    """Read settings from the environment. Raises ConfigurationError if GEMINI_API_KEY is unset."""
    api_key = os.getenv("GEMINI_API_KEY", "").strip()
    if not api_key:
        raise ConfigurationError("GEMINI_API_KEY environment variable is not set")

    settings = Settings(
        gemini_api_key=api_key,
        gemini_api_url=os.getenv("GEMINI_API_URL", DEFAULT_GEMINI_API_URL).rstrip("/"),
        gemini_model=os.getenv("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
        websocket_url=os.getenv("DEVIN_WS_URL") or None,
        keepalive_interval=float(os.getenv("RELAY_KEEPALIVE_INTERVAL", str(DEFAULT_KEEPALIVE_INTERVAL))),
        reconnect_delay=float(os.getenv("RELAY_RECONNECT_DELAY", str(DEFAULT_RECONNECT_DELAY))),
        debug=bool(os.getenv("DEBUG")),
    )
    logger.debug(f"Settings loaded (model={settings.gemini_model}, keepalive={settings.keepalive_interval}s)")
    return settings
