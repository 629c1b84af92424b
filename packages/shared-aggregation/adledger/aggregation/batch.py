"""Scheduled close-out batches.

Each job aggregates the most recently completed period for every active
client and every enabled platform:

    runner = BatchRunner(directory, get_registry(), PeriodAggregator(store))
    result = runner.run(CloseOutJob.DAILY)
    if not result.success:
        for error in result.errors:
            alert(error)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from enum import Enum

from adledger.aggregation.aggregator import PeriodAggregator
from adledger.aggregation.exceptions import PartialAggregationError
from adledger.aggregation.periods import Period
from adledger.connectors import Client, ClientDirectory, FetcherRegistry, RetryPolicy
from adledger.storage import DataSource, PeriodSummary, PeriodType

logger = logging.getLogger(__name__)


class CloseOutJob(str, Enum):
    """Scheduled close-out jobs."""

    DAILY = "daily"  # yesterday
    WEEKLY = "weekly"  # most recent completed ISO week
    MONTHLY = "monthly"  # most recent completed calendar month

    @property
    def period_type(self) -> PeriodType:
        return PeriodType(self.value)

    def period_for(self, today: date) -> Period:
        return Period.last_completed(self.period_type, today)


@dataclass
class BatchResult:
    """Result of one close-out batch."""

    job: CloseOutJob
    period: Period
    started_at: datetime
    completed_at: datetime | None = None
    processed_clients: int = 0
    failed_clients: int = 0
    summaries: list[PeriodSummary] = field(default_factory=list)
    errors: list[PartialAggregationError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Return True if every client and platform was aggregated."""
        return not self.errors

    @property
    def duration_seconds(self) -> float | None:
        """Return batch duration in seconds."""
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None


class BatchRunner:
    """Run close-out jobs over all active clients in a bounded thread pool.

    One client's failure is recorded as a PartialAggregationError and never
    stops the others.
    """

    def __init__(
        self,
        clients: ClientDirectory,
        fetchers: FetcherRegistry,
        aggregator: PeriodAggregator,
        retry_policy: RetryPolicy | None = None,
        max_workers: int = 4,
        today: Callable[[], date] | None = None,
    ):
        self.clients = clients
        self.fetchers = fetchers
        self.aggregator = aggregator
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_workers = max_workers
        self._today = today or (lambda: datetime.now(UTC).date())

    def run(self, job: CloseOutJob, today: date | None = None) -> BatchResult:
        """Aggregate the last completed period of `job` for every active client."""
        period = job.period_for(today or self._today())
        result = BatchResult(job=job, period=period, started_at=datetime.now(UTC))
        clients = self.clients.list_active()
        logger.info(f"Starting {job.value} close-out for {period} ({len(clients)} clients)")

        with ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="closeout") as pool:
            outcomes = list(pool.map(lambda client: self._run_client(client, period), clients))

        for summaries, errors in outcomes:
            result.summaries.extend(summaries)
            result.errors.extend(errors)
            if errors:
                result.failed_clients += 1
            else:
                result.processed_clients += 1

        result.completed_at = datetime.now(UTC)
        logger.info(
            f"Finished {job.value} close-out for {period}: {result.processed_clients} clients processed, "
            f"{result.failed_clients} failed in {result.duration_seconds:.1f}s"
        )
        return result

    def _run_client(
        self, client: Client, period: Period
    ) -> tuple[list[PeriodSummary], list[PartialAggregationError]]:
        summaries: list[PeriodSummary] = []
        errors: list[PartialAggregationError] = []
        for platform in client.enabled_platforms():
            fetcher = self.fetchers.get(platform)
            if fetcher is None:
                logger.debug(f"No fetcher registered for {platform.value}, skipping {client.client_id}")
                continue
            account = client.account_for(platform)
            try:
                records = self.retry_policy.call(fetcher.fetch, account, period.date_range)
                summaries.append(
                    self.aggregator.aggregate(
                        client.client_id,
                        platform,
                        period.period_type,
                        period.start,
                        records,
                        data_source=DataSource.API,
                        normalizer=self.aggregator.normalizer_for(account),
                    )
                )
            except Exception as e:
                error = PartialAggregationError(client.client_id, platform, e)
                logger.error(str(error))
                errors.append(error)
        return summaries, errors
