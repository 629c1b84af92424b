"""Custom exceptions for cache resolution."""

from __future__ import annotations

from adledger.connectors import Platform


class CacheError(Exception):
    """Base exception for cache resolution errors."""

    pass


class DataUnavailableError(CacheError):
    """Nothing is cached for a key and fetching it failed.

    Callers should present this as "temporarily unavailable" for the one key.

    Attributes:
        client_id: Client the data was requested for.
        platform: Platform that could not be read.
        target: Period id or date range that could not be resolved.
        cause: The fetch error, when there was one.
    """

    def __init__(self, client_id: str, platform: Platform, target: str, cause: BaseException | None = None):
        self.client_id = client_id
        self.platform = platform
        self.target = target
        self.cause = cause
        message = f"Data temporarily unavailable for {client_id}/{platform.value} {target}"
        if cause is not None:
            message = f"{message}: {type(cause).__name__}: {cause}"
        super().__init__(message)


class UnknownClientError(CacheError, LookupError):
    """Raised when the client directory has no such client."""

    def __init__(self, client_id: str):
        self.client_id = client_id
        super().__init__(f"Unknown client: {client_id}")


class PlatformNotConfiguredError(CacheError, LookupError):
    """Raised when a client has no enabled account or no fetcher for a platform."""

    def __init__(self, client_id: str, platform: Platform, reason: str = "no enabled account"):
        self.client_id = client_id
        self.platform = platform
        super().__init__(f"Platform {platform.value} not configured for {client_id}: {reason}")
