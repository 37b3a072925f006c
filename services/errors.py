"""
Error types for the quote engine.

AuthError ends a whole refresh cycle. ParseError and NetworkError are
confined to a single symbol's fetch. ValidationError is returned to whoever
asked to validate a symbol.
"""

from typing import Any, Dict, Optional


class TickerWatchError(Exception):
    """Base class for all engine errors."""

    code = "tickerwatch_error"

    def __init__(self, message: str, *, code: Optional[str] = None, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code or self.code
        self.detail = detail or {}


class AuthError(TickerWatchError):
    """Cookie or crumb exchange failed or returned something malformed."""
    code = "auth_error"


class ParseError(TickerWatchError):
    """A quote payload is missing required fields."""
    code = "parse_error"


class NetworkError(TickerWatchError):
    """Transport failure or an unexpected HTTP status."""
    code = "network_error"


class ValidationError(TickerWatchError):
    """A symbol lookup found nothing."""
    code = "validation_error"
