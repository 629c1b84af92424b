"""
AdLedger Cache - freshness-aware resolution over the cache tiers.

Provides:
- CacheFreshnessArbiter: serve cache, refresh in the background, or fetch
- RefreshWorkerPool and SingleFlight for background and collapsed fetches
- RefreshMonitor for per client/platform fetch health
- CacheSettings loaded from ADLEDGER_* environment variables

Usage:
    from adledger.cache import CacheFreshnessArbiter, CacheSettings

    arbiter = CacheFreshnessArbiter(store, get_registry(), directory, settings=CacheSettings.from_env())
    resolution = arbiter.resolve("hotel_1", Platform.META, DateRange(date(2026, 10, 1), date(2026, 10, 31)))
"""

from adledger.cache.arbiter import (
    CacheFreshnessArbiter,
    PeriodResolution,
    Resolution,
    ResolutionSource,
)
from adledger.cache.exceptions import (
    CacheError,
    DataUnavailableError,
    PlatformNotConfiguredError,
    UnknownClientError,
)
from adledger.cache.monitor import ClientHealth, RefreshFailure, RefreshMonitor
from adledger.cache.refresh import RefreshWorkerPool, SingleFlight
from adledger.cache.settings import CacheSettings

__all__ = [
    # Arbiter
    "CacheFreshnessArbiter",
    "Resolution",
    "PeriodResolution",
    "ResolutionSource",
    # Background work
    "RefreshWorkerPool",
    "SingleFlight",
    "RefreshMonitor",
    "ClientHealth",
    "RefreshFailure",
    # Settings
    "CacheSettings",
    # Exceptions
    "CacheError",
    "DataUnavailableError",
    "PlatformNotConfiguredError",
    "UnknownClientError",
]
