"""Pytest fixtures for shared-reporting tests."""

from __future__ import annotations

from abc import ABC
from collections.abc import Generator
from datetime import UTC, datetime
from typing import Any

import pytest
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
)
from adledger.reporting import ReportService
from adledger.storage import InMemoryCacheStore

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


class StubFetcher(BaseFetcher, ABC):
    """Returns fixed rows, or raises `error` when set."""

    def __init__(self, rows: list[dict[str, Any]]):
        self.rows = rows
        self.error: Exception | None = None
        self.calls: list[DateRange] = []

    def fetch_raw(self, account: PlatformAccount, date_range: DateRange) -> list[dict[str, Any]]:
        self.calls.append(date_range)
        if self.error is not None:
            raise self.error
        return self.rows


class MetaStub(StubFetcher):
    platform = Platform.META


class GoogleAdsStub(StubFetcher):
    platform = Platform.GOOGLE_ADS


@pytest.fixture
def meta_fetcher() -> MetaStub:
    return MetaStub(
        [
            {
                "campaign_id": "m1",
                "campaign_name": "Prospecting",
                "spend": "1000",
                "impressions": "20000",
                "clicks": "400",
                "actions": [{"action_type": "omni_purchase", "value": "10"}],
                "action_values": [{"action_type": "omni_purchase", "value": "5000"}],
            }
        ]
    )


@pytest.fixture
def google_fetcher() -> GoogleAdsStub:
    return GoogleAdsStub(
        [
            {
                "campaign_id": "g1",
                "campaign_name": "Search - Brand",
                "spend": 500,
                "impressions": 5000,
                "clicks": 100,
                "conversions": [{"conversion_name": "Rezerwacja", "conversions": 5, "conversion_value": 2000}],
            }
        ]
    )


@pytest.fixture
def registry(meta_fetcher, google_fetcher) -> Generator[FetcherRegistry, None, None]:
    FetcherRegistry._instance = None
    registry = FetcherRegistry()
    registry.register(meta_fetcher)
    registry.register(google_fetcher)
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
                    PlatformAccount(Platform.META, "act_1"),
                    PlatformAccount(Platform.GOOGLE_ADS, "123-456-7890"),
                ],
            ),
            Client("hotel_2", "Hotel Two", [PlatformAccount(Platform.META, "act_2")]),
        ]
    )


@pytest.fixture
def service(registry, directory) -> Generator[ReportService, None, None]:
    refresher = RefreshWorkerPool(max_workers=1)
    arbiter = CacheFreshnessArbiter(
        store=InMemoryCacheStore(),
        fetchers=registry,
        clients=directory,
        settings=CacheSettings(retry=RetryPolicy(max_attempts=1)),
        refresher=refresher,
        clock=lambda: NOW,
    )
    yield ReportService(arbiter)
    refresher.shutdown()
