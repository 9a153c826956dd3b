from __future__ import annotations


class InvalidPosition(ValueError):
    """Raised when a position fails validation.

    ``field`` names the offending attribute so callers can point the user at it.
    """

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class MarketDataError(RuntimeError):
    """Raised when quotes cannot be resolved for a market reference."""
