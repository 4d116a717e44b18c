# DevinRelay/devin_relay/__init__.py
"""Devin session relay: WebSocket client that answers Devin with Gemini-generated replies."""

__version__ = "0.1.0"
