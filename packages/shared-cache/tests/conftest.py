"""Pytest fixtures for shared-cache tests."""

from __future__ import annotations

import threading
import time
from collections.abc import Generator
from datetime import UTC, date, datetime, timedelta
from typing import Any

import pytest
from adledger.aggregation import Period
from adledger.cache import CacheFreshnessArbiter, CacheSettings, RefreshWorkerPool
from adledger.connectors import (
    BaseFetcher,
    Client,
    DateRange,
    FetcherRegistry,
    InMemoryClientDirectory,
    Platform,
    PlatformAccount,
    RetryPolicy,
    UpstreamError,
)
from adledger.storage import CacheEntry, CacheKey, InMemoryCacheStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)  # Monday of ISO week 43


class FakeClock:
    """Settable clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


class CountingFetcher(BaseFetcher):
    """Meta fetcher returning one campaign per call, counting calls.

    `error` fails every call; `failing_starts` fails ranges starting on those days.
    """

    platform = Platform.META

    def __init__(self, spend: float = 100.0, reservations: int = 2, value: float = 600.0, delay: float = 0.0):
        self.spend = spend
        self.reservations = reservations
        self.value = value
        self.delay = delay
        self.error: Exception | None = None
        self.failing_starts: set[date] = set()
        self.calls: list[DateRange] = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def fetch_raw(self, account: PlatformAccount, date_range: DateRange) -> list[dict[str, Any]]:
        with self._lock:
            self.calls.append(date_range)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if date_range.start in self.failing_starts:
            raise UpstreamError(f"upstream failed for {date_range}")
        return [
            {
                "campaign_id": "c1",
                "campaign_name": "Brand",
                "spend": str(self.spend),
                "impressions": "1000",
                "clicks": "40",
                "actions": [{"action_type": "omni_purchase", "value": str(self.reservations)}],
                "action_values": [{"action_type": "omni_purchase", "value": str(self.value)}],
            }
        ]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(NOW)


@pytest.fixture
def store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def fetcher() -> CountingFetcher:
    return CountingFetcher()


@pytest.fixture
def registry(fetcher) -> Generator[FetcherRegistry, None, None]:
    """Fresh registry holding the counting Meta fetcher."""
    FetcherRegistry._instance = None
    registry = FetcherRegistry()
    registry.register(fetcher)
    yield registry
    FetcherRegistry._instance = None


@pytest.fixture
def directory() -> InMemoryClientDirectory:
    return InMemoryClientDirectory(
        [
            Client(
                client_id="hotel_1",
                name="Hotel One",
                accounts=[
                    PlatformAccount(Platform.META, "act_1", credentials={"access_token": "t"}),
                    PlatformAccount(Platform.GOOGLE_ADS, "123-456-7890"),
                ],
            )
        ]
    )


@pytest.fixture
def settings() -> CacheSettings:
    return CacheSettings(
        retry=RetryPolicy(max_attempts=2, backoff_multiplier=0, backoff_min=0, backoff_max=0, max_retry_after=0)
    )


@pytest.fixture
def refresher() -> Generator[RefreshWorkerPool, None, None]:
    pool = RefreshWorkerPool(max_workers=2)
    yield pool
    pool.shutdown()


@pytest.fixture
def arbiter(store, registry, directory, settings, refresher, clock) -> CacheFreshnessArbiter:
    return CacheFreshnessArbiter(
        store=store,
        fetchers=registry,
        clients=directory,
        settings=settings,
        refresher=refresher,
        clock=clock,
    )


@pytest.fixture
def october() -> DateRange:
    """The open month."""
    return DateRange(NOW.date().replace(day=1), NOW.date().replace(day=31))


@pytest.fixture
def seed_entry(store, arbiter, october):
    """Store an October cache entry last updated `age` ago; returns its key."""

    def _seed(age: timedelta, spend: float = 50.0) -> CacheKey:
        period = Period.month_of(october.start)
        summary = arbiter.aggregator.build(
            "hotel_1",
            Platform.META,
            period.period_type,
            period.start,
            [{"campaign_id": "c1", "campaign_name": "Brand", "spend": spend}],
        )
        key = CacheKey("hotel_1", Platform.META, period.period_id)
        store.put_entry(CacheEntry(key=key, summary=summary, last_updated=NOW - age))
        return key

    return _seed
