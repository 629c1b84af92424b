"""Tests for the scheduled close-out batch runner."""

from datetime import date

import pytest
from adledger.aggregation.batch import BatchRunner, CloseOutJob
from adledger.aggregation.exceptions import PartialAggregationError
from adledger.connectors import (
    AuthError,
    Client,
    InMemoryClientDirectory,
    Platform,
    PlatformAccount,
    UpstreamError,
)
from adledger.storage import DataSource, PeriodType, SummaryKey


def _client(client_id: str, *platforms: Platform) -> Client:
    return Client(
        client_id=client_id,
        name=client_id.title(),
        accounts=[PlatformAccount(p, f"{client_id}-{p.value}") for p in platforms],
    )


@pytest.fixture
def directory() -> InMemoryClientDirectory:
    return InMemoryClientDirectory(
        [
            _client("alpha", Platform.META),
            _client("beta", Platform.META, Platform.GOOGLE_ADS),
            Client("paused", "Paused", [PlatformAccount(Platform.META, "paused-meta")], is_active=False),
        ]
    )


class TestCloseOutJob:
    def test_periods(self, today):
        assert CloseOutJob.DAILY.period_for(today).start == date(2026, 10, 18)
        assert CloseOutJob.WEEKLY.period_for(today).period_id == "2026-W42"
        assert CloseOutJob.MONTHLY.period_for(today).period_id == "2026-09"
        assert CloseOutJob.MONTHLY.period_type is PeriodType.MONTHLY


class TestBatchRunner:
    def test_aggregates_every_active_client(
        self, directory, fresh_registry, stub_fetcher_cls, aggregator, store, no_wait_retry, row, today
    ):
        fetcher = stub_fetcher_cls([row("c1", 100.0, 1, 500.0)])
        fresh_registry.register(fetcher)
        runner = BatchRunner(directory, fresh_registry, aggregator, no_wait_retry, today=lambda: today)

        result = runner.run(CloseOutJob.MONTHLY)

        assert result.success
        assert result.processed_clients == 2
        assert result.failed_clients == 0
        assert len(result.summaries) == 2
        assert result.duration_seconds is not None
        stored = store.get_summary(SummaryKey("alpha", Platform.META, PeriodType.MONTHLY, date(2026, 9, 1)))
        assert stored.data_source is DataSource.API
        assert stored.metrics.roas == 5.0
        # Google Ads has no registered fetcher and is skipped
        assert {account for account, _ in fetcher.calls} == {"alpha-meta", "beta-meta"}

    def test_one_client_failure_does_not_abort_batch(
        self, directory, fresh_registry, stub_fetcher_cls, aggregator, store, no_wait_retry, row, today
    ):
        fetcher = stub_fetcher_cls([row("c1", 100.0)], failing_accounts={"alpha-meta": AuthError("token expired")})
        fresh_registry.register(fetcher)
        runner = BatchRunner(directory, fresh_registry, aggregator, no_wait_retry)

        result = runner.run(CloseOutJob.DAILY, today=today)

        assert not result.success
        assert result.processed_clients == 1
        assert result.failed_clients == 1
        error = result.errors[0]
        assert isinstance(error, PartialAggregationError)
        assert error.client_id == "alpha"
        assert error.platform is Platform.META
        assert isinstance(error.cause, AuthError)
        assert store.get_summary(SummaryKey("beta", Platform.META, PeriodType.DAILY, date(2026, 10, 18))) is not None

    def test_upstream_errors_retried(
        self, directory, fresh_registry, stub_fetcher_cls, aggregator, no_wait_retry, row, today
    ):
        fetcher = stub_fetcher_cls([row("c1", 1.0)], failing_accounts={"beta-meta": UpstreamError("502")})
        fresh_registry.register(fetcher)
        runner = BatchRunner(directory, fresh_registry, aggregator, no_wait_retry)

        result = runner.run(CloseOutJob.WEEKLY, today=today)

        beta_calls = [c for c in fetcher.calls if c[0] == "beta-meta"]
        assert len(beta_calls) == no_wait_retry.max_attempts
        assert beta_calls[0][1].start == date(2026, 10, 12)
        assert result.failed_clients == 1

    def test_no_clients(self, fresh_registry, aggregator, today):
        runner = BatchRunner(InMemoryClientDirectory(), fresh_registry, aggregator)

        result = runner.run(CloseOutJob.DAILY, today=today)

        assert result.success
        assert result.processed_clients == 0
