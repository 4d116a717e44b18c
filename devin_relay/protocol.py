# DevinRelay/devin_relay/protocol.py
# @ai-rules:
# 1. [Pattern]: Outbound frames are Pydantic models with a Literal `type` tag. Serialize with to_wire().
# 2. [Gotcha]: UserMessageFrame.event_id uses default_factory -- every instance gets a fresh id, even for identical text.
# 3. [Pattern]: parse_inbound() raises ProtocolParseError on bad JSON/shape and returns None for frames we don't handle.
# 4. [Constraint]: Only devin_event/devin_message and devin_event/user_message are classified. Everything else is Unknown.
"""Wire codec for the Devin session WebSocket."""
from __future__ import annotations

import json
import uuid
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ProtocolParseError


def new_event_id() -> str:
    return f"event-{uuid.uuid4()}"


# =============================================================================
# Outbound Frames
# =============================================================================

class _Frame(BaseModel):
    def to_wire(self) -> str:
        return self.model_dump_json()


class SubscribeFrame(_Frame):
    """Sent once per connection, right after the channel opens."""
    type: Literal["subscribe_devin"] = "subscribe_devin"


class PingFrame(_Frame):
    """Application-level keepalive."""
    type: Literal["ping"] = "ping"


class UserMessageFrame(_Frame):
    """A chat message from us to Devin."""
    type: Literal["user_message"] = "user_message"
    message: str
    origin: Literal["web"] = "web"
    ensure_awake: bool = True
    event_id: str = Field(default_factory=new_event_id)


OutboundFrame = Union[SubscribeFrame, PingFrame, UserMessageFrame]


# =============================================================================
# Inbound Events
# =============================================================================

class _InboundEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: str = ""

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp_as_text(cls, value: Any) -> str:
        # Epoch numbers and null are kept as text, not rejected.
        return "" if value is None else str(value)


class DevinMessageEvent(_InboundEvent):
    """devin_event/devin_message -- something Devin said."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    message: str
    refund_units: Optional[float] = Field(None, alias="acus_to_refund")


class UserMessageEvent(_InboundEvent):
    """devin_event/user_message -- echo of a message sent by a user (us included)."""
    message: str
    user_label: Optional[str] = None


InboundEvent = Union[DevinMessageEvent, UserMessageEvent]


def parse_inbound(raw: str | bytes) -> Optional[InboundEvent]:
    """Classify one raw inbound frame.

    Returns None for well-formed frames we have no interest in.
    Raises ProtocolParseError for malformed JSON or a recognised event with a bad shape.
    """
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ProtocolParseError(f"Invalid JSON frame: {e}") from e

    if not isinstance(payload, dict) or payload.get("type") != "devin_event":
        return None
    event = payload.get("event")
    if not isinstance(event, dict):
        return None

    event_type = event.get("type")
    try:
        if event_type == "devin_message":
            return DevinMessageEvent.model_validate(event)
        if event_type == "user_message":
            user = event.get("username") or event.get("user_id")
            return UserMessageEvent(
                timestamp=event.get("timestamp", ""),
                message=event.get("message"),
                user_label=str(user) if user is not None else None,
            )
    except ValidationError as e:
        raise ProtocolParseError(f"Malformed {event_type} event: {e.error_count()} validation error(s)") from e
    return None
