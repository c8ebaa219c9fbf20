"""
Exception hierarchy for round acquisition and the game client.

Schema failures are reported with pydantic's own ``ValidationError``; the
classes here cover the network, deadline and fallback failure modes.
"""

from typing import Any, Dict, Optional


class GuessrError(Exception):
    """Base exception for shqip-guessr errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """Initialize error.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.details = details or {}


class NetworkError(GuessrError):
    """Raised when an external API call fails (bad status or transport failure)."""

    def __init__(self, message: str, status: Optional[int] = None, body: str = ""):
        super().__init__(message, details={"status": status, "body": body})
        self.status = status
        self.body = body


class TimeoutExhaustion(GuessrError):
    """Raised when the search deadline elapses without a winning attempt."""

    def __init__(self, timeout: float):
        super().__init__(f"No search attempt succeeded within {timeout}s", details={"timeout": timeout})
        self.timeout = timeout


class FallbackExhaustion(GuessrError):
    """Raised when every fallback lookup failed; fatal for the request."""
    pass


class RoundFetchError(GuessrError):
    """Raised by the round API client when the server reports an error."""
    pass
