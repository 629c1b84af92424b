"""AdLedger Platform Connectors.

This package provides the collaborator seam towards the ad platforms:
- Platform, client and account configuration
- BaseFetcher contract and the fetcher registry
- Fetch error taxonomy (AuthError, RateLimitError, UpstreamError)
- Retry policy shared by every fetch path

Example:
    from adledger.connectors import (
        DateRange,
        MetaFetcher,
        Platform,
        PlatformAccount,
        RetryPolicy,
        get_registry,
    )

    registry = get_registry()
    registry.register(MetaFetcher(access_token=token))

    account = PlatformAccount(Platform.META, "act_12345")
    fetcher = registry.require(Platform.META)
    records = RetryPolicy().call(fetcher.fetch, account, DateRange(start, end))
"""

from adledger.connectors.adapters import MetaFetcher
from adledger.connectors.base import BaseFetcher
from adledger.connectors.config import (
    Client,
    DateRange,
    Platform,
    PlatformAccount,
)
from adledger.connectors.directory import ClientDirectory, InMemoryClientDirectory
from adledger.connectors.exceptions import (
    AuthError,
    FetchError,
    RateLimitError,
    UpstreamError,
)
from adledger.connectors.registry import FetcherRegistry, get_registry
from adledger.connectors.retry import RetryPolicy

__all__ = [
    # Base
    "BaseFetcher",
    # Config
    "Client",
    "DateRange",
    "Platform",
    "PlatformAccount",
    # Directory
    "ClientDirectory",
    "InMemoryClientDirectory",
    # Exceptions
    "AuthError",
    "FetchError",
    "RateLimitError",
    "UpstreamError",
    # Registry
    "FetcherRegistry",
    "get_registry",
    # Retry
    "RetryPolicy",
    # Adapters
    "MetaFetcher",
]
