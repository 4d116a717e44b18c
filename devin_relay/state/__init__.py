# DevinRelay/devin_relay/state/__init__.py
"""In-memory conversation state."""
from .history import HISTORY_LIMIT, HistoryBuffer

__all__ = ["HISTORY_LIMIT", "HistoryBuffer"]
