# DevinRelay/devin_relay/errors.py
"""Error taxonomy for the relay client."""


class RelayError(Exception):
    """Base class for all relay errors."""
    pass


class ConfigurationError(RelayError):
    """Raised when a required setting (the Gemini API key) is missing. Fatal at startup."""
    pass


class ProtocolParseError(RelayError):
    """Raised when an inbound frame is not valid JSON or has an unusable shape."""
    pass


class GenerationError(RelayError):
    """Raised when a single Gemini call fails (HTTP status, transport, or payload shape)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
