"""
Custom exceptions for the list release service.
"""

from typing import Optional


class ListReleaseError(Exception):
    """Base exception for list release errors."""
    pass


class FetchError(ListReleaseError):
    """Raised when an outbound request still fails after every retry."""

    def __init__(
        self,
        url: str,
        attempts: int,
        status: Optional[int] = None,
        snippet: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> None:
        self.url = url
        self.attempts = attempts
        self.status = status
        self.snippet = snippet
        self.reason = reason

        message = f"fetch failed for {url} after {attempts} attempts"
        if status is not None:
            message += f": HTTP {status}"
            if snippet:
                message += f". Response snippet: {snippet}"
        elif reason:
            message += f": {reason}"
        super().__init__(message)


class SourceError(ListReleaseError):
    """Raised when the film source (list or sheet) cannot be read at all."""
    pass


class RequestValidationError(ListReleaseError):
    """Raised when an inbound request is missing or has malformed fields."""
    pass
