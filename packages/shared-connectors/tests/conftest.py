"""Pytest fixtures for shared-connectors tests."""

from __future__ import annotations

from collections.abc import Generator
from datetime import date
from typing import Any

import pytest
from adledger.connectors.base import BaseFetcher
from adledger.connectors.config import DateRange, Platform, PlatformAccount
from adledger.connectors.registry import FetcherRegistry


class MockFetcher(BaseFetcher):
    """Mock fetcher for testing."""

    platform = Platform.META

    def __init__(self, rows: list[dict[str, Any]] | None = None, error: Exception | None = None):
        self.rows = rows or []
        self.error = error
        self.calls: list[tuple[PlatformAccount, DateRange]] = []

    def fetch_raw(self, account: PlatformAccount, date_range: DateRange) -> list[dict[str, Any]]:
        self.calls.append((account, date_range))
        if self.error is not None:
            raise self.error
        return self.rows


@pytest.fixture
def meta_account() -> PlatformAccount:
    """Create a test Meta account."""
    return PlatformAccount(
        platform=Platform.META,
        account_id="act_12345",
        credentials={"access_token": "test-token"},
    )


@pytest.fixture
def october() -> DateRange:
    return DateRange(date(2026, 10, 1), date(2026, 10, 31))


@pytest.fixture
def mock_fetcher() -> MockFetcher:
    return MockFetcher(
        rows=[
            {
                "campaign_id": "1",
                "campaign_name": "Autumn",
                "spend": "100.0",
                "actions": [{"action_type": "lead", "value": "2"}],
            }
        ]
    )


@pytest.fixture
def fresh_registry() -> Generator[FetcherRegistry, None, None]:
    """Create a fresh registry instance for testing.

    Resets the singleton after the test.
    """
    FetcherRegistry._instance = None
    registry = FetcherRegistry()
    yield registry
    FetcherRegistry._instance = None


@pytest.fixture
def make_fetcher() -> type[MockFetcher]:
    """Return the MockFetcher class for tests that need custom rows or errors."""
    return MockFetcher
