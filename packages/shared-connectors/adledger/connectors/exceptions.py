"""Fetch error taxonomy shared by every platform fetcher."""

from __future__ import annotations


class FetchError(Exception):
    """Base exception for platform fetch errors."""

    pass


class AuthError(FetchError):
    """Raised when platform credentials are rejected. Never retried."""

    pass


class RateLimitError(FetchError):
    """Raised when the platform throttles requests.

    Attributes:
        retry_after: Seconds the platform asked us to wait, when it said so.
    """

    def __init__(self, message: str = "Rate limit exceeded", retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class UpstreamError(FetchError):
    """Raised on transient platform failures (5xx, timeouts, bad payloads)."""

    pass
