"""Settings for the cache freshness arbiter."""

from __future__ import annotations

import os
from datetime import timedelta

from pydantic import BaseModel, Field

from adledger.connectors import RetryPolicy


class CacheSettings(BaseModel):
    """Freshness, locking and refresh pool configuration.

    Example:
        settings = CacheSettings(freshness_threshold_seconds=3600)
        arbiter = CacheFreshnessArbiter(store, registry, directory, settings=settings)
    """

    freshness_threshold_seconds: float = Field(default=3 * 60 * 60, gt=0)
    lock_ttl_seconds: float = Field(default=5 * 60, gt=0)
    refresh_workers: int = Field(default=4, ge=1)
    retention_months: int = Field(default=14, ge=1)
    retry: RetryPolicy = Field(default_factory=RetryPolicy)

    @property
    def freshness_threshold(self) -> timedelta:
        return timedelta(seconds=self.freshness_threshold_seconds)

    @property
    def lock_ttl(self) -> timedelta:
        return timedelta(seconds=self.lock_ttl_seconds)

    @classmethod
    def from_env(cls) -> CacheSettings:
        """Load configuration from environment variables."""
        return cls(
            freshness_threshold_seconds=float(os.getenv("ADLEDGER_FRESHNESS_THRESHOLD_SECONDS", "10800")),
            lock_ttl_seconds=float(os.getenv("ADLEDGER_LOCK_TTL_SECONDS", "300")),
            refresh_workers=int(os.getenv("ADLEDGER_REFRESH_WORKERS", "4")),
            retention_months=int(os.getenv("ADLEDGER_RETENTION_MONTHS", "14")),
            retry=RetryPolicy.from_env(),
        )
