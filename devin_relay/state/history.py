# DevinRelay/devin_relay/state/history.py
# @ai-rules:
# 1. [Constraint]: len(buffer) <= HISTORY_LIMIT at all times. Oldest entry evicted first (FIFO).
# 2. [Pattern]: render_for_prompt() returns a fresh generator per call -- callers may iterate it again by calling again.
# 3. [Constraint]: No lock needed -- mutated only from the single asyncio event loop.
"""
HistoryBuffer -- bounded, ordered record of the conversation with Devin.

The buffer is the only context the Gemini prompt sees, so its rendering
format is part of the prompt contract.
"""
from __future__ import annotations

import logging
from collections import deque
from collections.abc import Iterator
from typing import Optional

from ..models import HistoryEntry, Sender, utc_now_iso

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20

SENDER_LABELS = {
    Sender.REMOTE: "相手",
    Sender.LOCAL: "自分",
}


class HistoryBuffer:
    """Insertion-ordered ring of HistoryEntry, capped at *limit* entries."""

    def __init__(self, limit: int = HISTORY_LIMIT) -> None:
        self._limit = limit
        self._entries: deque[HistoryEntry] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    def append(self, entry: HistoryEntry) -> None:
        """Add *entry* at the tail, evicting from the head until within the limit."""
        self._entries.append(entry)
        while len(self._entries) > self._limit:
            evicted = self._entries.popleft()
            logger.debug("History full, evicted %s entry from %s", evicted.sender.value, evicted.timestamp)

    def record(self, sender: Sender, message: str, timestamp: Optional[str] = None) -> HistoryEntry:
        """Build an entry (timestamp defaults to now) and append it."""
        entry = HistoryEntry(sender=sender, message=message, timestamp=timestamp or utc_now_iso())
        self.append(entry)
        return entry

    def entries(self) -> list[HistoryEntry]:
        """Snapshot of the current entries, oldest first."""
        return list(self._entries)

    def render_for_prompt(self) -> Iterator[str]:
        """Yield one formatted line per entry, oldest first."""
        for entry in list(self._entries):
            yield f"{SENDER_LABELS[entry.sender]}「{entry.message}」"

    def format_for_prompt(self) -> str:
        return "\n".join(self.render_for_prompt())

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(list(self._entries))
