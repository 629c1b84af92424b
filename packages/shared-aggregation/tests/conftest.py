"""Pytest fixtures for shared-aggregation tests."""

from __future__ import annotations

from collections.abc import Generator
from datetime import date
from typing import Any

import pytest
from adledger.aggregation.aggregator import PeriodAggregator
from adledger.connectors import (
    BaseFetcher,
    DateRange,
    FetcherRegistry,
    Platform,
    PlatformAccount,
    RetryPolicy,
)
from adledger.storage import InMemoryCacheStore

TODAY = date(2026, 10, 19)  # a Monday, ISO week 43


def meta_row(campaign_id: str, spend: float, purchases: int = 0, value: float = 0.0, **extra: Any) -> dict[str, Any]:
    """A Meta insights row with one purchase identifier."""
    row = {
        "campaign_id": campaign_id,
        "campaign_name": f"Campaign {campaign_id}",
        "spend": str(spend),
        "impressions": "1000",
        "clicks": "50",
        "actions": [{"action_type": "omni_purchase", "value": str(purchases)}],
        "action_values": [{"action_type": "omni_purchase", "value": str(value)}],
    }
    row.update(extra)
    return row


class StubFetcher(BaseFetcher):
    """Fetcher returning fixed rows, failing for selected account ids."""

    platform = Platform.META

    def __init__(self, rows: list[dict[str, Any]], failing_accounts: dict[str, Exception] | None = None):
        self.rows = rows
        self.failing_accounts = failing_accounts or {}
        self.calls: list[tuple[str, DateRange]] = []

    def fetch_raw(self, account: PlatformAccount, date_range: DateRange) -> list[dict[str, Any]]:
        self.calls.append((account.account_id, date_range))
        if account.account_id in self.failing_accounts:
            raise self.failing_accounts[account.account_id]
        return self.rows


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def aggregator(store) -> PeriodAggregator:
    return PeriodAggregator(store)


@pytest.fixture
def no_wait_retry() -> RetryPolicy:
    return RetryPolicy(max_attempts=2, backoff_multiplier=0, backoff_min=0, backoff_max=0, max_retry_after=0)


@pytest.fixture
def stub_fetcher_cls() -> type[StubFetcher]:
    return StubFetcher


@pytest.fixture
def fresh_registry() -> Generator[FetcherRegistry, None, None]:
    """Fresh fetcher registry, reset after the test."""
    FetcherRegistry._instance = None
    registry = FetcherRegistry()
    yield registry
    FetcherRegistry._instance = None


@pytest.fixture
def row():
    """Factory for Meta insight rows."""
    return meta_row
