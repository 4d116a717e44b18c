# DevinRelay/devin_relay/models.py
# @ai-rules:
# 1. [Constraint]: All records are Pydantic BaseModel. HistoryEntry is frozen -- never mutate, append a new one.
# 2. [Pattern]: ConnectionState is written ONLY by ConnectionManager. Everything else reads it.
# 3. [Pattern]: Wire frames live in protocol.py, not here. This module has no JSON knowledge.
"""Pydantic schemas and state enums for the relay client."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


def utc_now_iso() -> str:
    """Current UTC time as an ISO-8601 string (matches JS Date.toISOString)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


# =============================================================================
# Conversation History
# =============================================================================

class Sender(str, Enum):
    """Who authored a history entry."""
    LOCAL = "local"    # this client (or the human operator behind it)
    REMOTE = "remote"  # Devin


class HistoryEntry(BaseModel):
    """One exchanged message. Immutable once created."""
    model_config = ConfigDict(frozen=True)

    sender: Sender = Field(..., description="local (us) or remote (Devin)")
    message: str = Field(..., description="Message text as sent or received")
    timestamp: str = Field(default_factory=utc_now_iso, description="ISO-8601 timestamp")


# =============================================================================
# State Machines
# =============================================================================

class ConnectionState(str, Enum):
    """Channel lifecycle states owned by ConnectionManager."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


class GenerationState(str, Enum):
    """Retry/escalation states of ResponseGenerator.generate()."""
    ATTEMPTING = "attempting"
    EXHAUSTED = "exhausted"
    SUCCESS = "success"
    GAVE_UP = "gave_up"


class EscalationDecision(str, Enum):
    """Operator answer after the retry budget is exhausted."""
    RETRY = "retry"
    ABORT = "abort"
