"""Cache store backed by BigQuery.

Two tables in one dataset:
- `cache_entries`: open-period snapshots with the refresh lock columns
- `period_summaries`: closed-period rows, one per summary key

Upserts use MERGE; the refresh lock is a conditional UPDATE whose affected
row count tells the caller whether it won the compare-and-swap.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import UTC, date, datetime, timedelta
from typing import Any

from google.cloud import bigquery
from pydantic import BaseModel

from adledger.connectors import Platform
from adledger.storage.base import CacheStore
from adledger.storage.models import (
    CacheEntry,
    CacheKey,
    PeriodSummary,
    PeriodType,
    SummaryKey,
)

logger = logging.getLogger(__name__)

CREATE_ENTRIES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS `{table}` (
    client_id STRING NOT NULL,
    platform STRING NOT NULL,
    period_id STRING NOT NULL,
    summary JSON NOT NULL,
    last_updated TIMESTAMP NOT NULL,
    refresh_in_progress BOOL DEFAULT FALSE,
    refresh_started_at TIMESTAMP
)
"""

CREATE_SUMMARIES_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS `{table}` (
    client_id STRING NOT NULL,
    platform STRING NOT NULL,
    period_type STRING NOT NULL,
    period_start DATE NOT NULL,
    period_end DATE NOT NULL,
    spend FLOAT64,
    impressions INT64,
    clicks INT64,
    campaign_count INT64,
    data_source STRING NOT NULL,
    summary JSON NOT NULL,
    updated_at TIMESTAMP
)
PARTITION BY period_start
CLUSTER BY client_id, platform, period_type
"""


class BigQueryStoreConfig(BaseModel):
    """Configuration for the BigQuery cache store."""

    project_id: str | None = None
    dataset: str = "adledger"
    location: str = "US"
    timeout: int = 300  # 5 minutes

    @classmethod
    def from_env(cls) -> BigQueryStoreConfig:
        """Load configuration from environment variables."""
        return cls(
            project_id=os.getenv("ADLEDGER_PROJECT_ID") or os.getenv("GCP_PROJECT_ID"),
            dataset=os.getenv("ADLEDGER_BQ_DATASET", "adledger"),
            location=os.getenv("ADLEDGER_BQ_LOCATION", "US"),
        )


def _json_field(value: Any) -> dict[str, Any]:
    """Parse a JSON column that may arrive as a string or already decoded."""
    if isinstance(value, str):
        return json.loads(value)
    if isinstance(value, dict):
        return value
    raise TypeError(f"Unexpected type for JSON column: {type(value).__name__}. Expected str or dict.")


class BigQueryCacheStore(CacheStore):
    """
    CacheStore over two BigQuery tables.

    Example:
        store = BigQueryCacheStore(BigQueryStoreConfig(project_id="my-project"))
        store.ensure_tables_exist()
    """

    def __init__(
        self,
        config: BigQueryStoreConfig | None = None,
        client: bigquery.Client | None = None,
    ):
        self.config = config or BigQueryStoreConfig.from_env()
        self._client = client

    @property
    def client(self) -> bigquery.Client:
        """Lazy initialization of BigQuery client."""
        if self._client is None:
            self._client = bigquery.Client(
                project=self.config.project_id,
                location=self.config.location,
            )
        return self._client

    @property
    def entries_table(self) -> str:
        return f"{self.config.project_id}.{self.config.dataset}.cache_entries"

    @property
    def summaries_table(self) -> str:
        return f"{self.config.project_id}.{self.config.dataset}.period_summaries"

    def ensure_tables_exist(self) -> None:
        """Create both tables if they don't exist."""
        self.client.query(CREATE_ENTRIES_TABLE_SQL.format(table=self.entries_table)).result()
        self.client.query(CREATE_SUMMARIES_TABLE_SQL.format(table=self.summaries_table)).result()
        logger.info(f"Ensured cache tables exist in {self.config.project_id}.{self.config.dataset}")

    def _run(self, sql: str, params: list[bigquery.ScalarQueryParameter]) -> Any:
        job_config = bigquery.QueryJobConfig(query_parameters=params)
        return self.client.query(sql, job_config=job_config).result(timeout=self.config.timeout)

    @staticmethod
    def _key_params(key: CacheKey) -> list[bigquery.ScalarQueryParameter]:
        return [
            bigquery.ScalarQueryParameter("client_id", "STRING", key.client_id),
            bigquery.ScalarQueryParameter("platform", "STRING", key.platform.value),
            bigquery.ScalarQueryParameter("period_id", "STRING", key.period_id),
        ]

    _ENTRY_WHERE = "client_id = @client_id AND platform = @platform AND period_id = @period_id"
    # True unless a different refresher reclaimed the lock after `held_since`
    _HOLDS_LOCK = (
        "(@held_since IS NULL OR target.refresh_in_progress IS NOT TRUE"
        " OR target.refresh_started_at = @held_since)"
    )

    # Cache entries

    def get_entry(self, key: CacheKey) -> CacheEntry | None:
        sql = f"""
        SELECT *
        FROM `{self.entries_table}`
        WHERE {self._ENTRY_WHERE}
        """
        rows = list(self._run(sql, self._key_params(key)))
        if not rows:
            return None
        return self._row_to_entry(rows[0])

    def put_entry(self, entry: CacheEntry, held_since: datetime | None = None) -> None:
        sql = f"""
        MERGE `{self.entries_table}` AS target
        USING (SELECT @client_id AS client_id, @platform AS platform, @period_id AS period_id) AS source
        ON target.client_id = source.client_id
            AND target.platform = source.platform
            AND target.period_id = source.period_id
        WHEN MATCHED THEN
            UPDATE SET
                summary = PARSE_JSON(@summary),
                last_updated = @last_updated,
                refresh_in_progress = IF({self._HOLDS_LOCK}, FALSE, target.refresh_in_progress),
                refresh_started_at = IF({self._HOLDS_LOCK}, NULL, target.refresh_started_at)
        WHEN NOT MATCHED THEN
            INSERT (client_id, platform, period_id, summary, last_updated, refresh_in_progress, refresh_started_at)
            VALUES (@client_id, @platform, @period_id, PARSE_JSON(@summary), @last_updated, FALSE, NULL)
        """
        params = self._key_params(entry.key) + [
            bigquery.ScalarQueryParameter("summary", "STRING", json.dumps(entry.summary.to_dict())),
            bigquery.ScalarQueryParameter("last_updated", "TIMESTAMP", entry.last_updated),
            bigquery.ScalarQueryParameter("held_since", "TIMESTAMP", held_since),
        ]
        self._run(sql, params)
        logger.debug(f"Stored cache entry {entry.key}")

    def delete_entry(self, key: CacheKey) -> bool:
        sql = f"""
        DELETE FROM `{self.entries_table}`
        WHERE {self._ENTRY_WHERE}
        """
        result = self._run(sql, self._key_params(key))
        return (result.num_dml_affected_rows or 0) > 0

    def list_entries(self, client_id: str | None = None) -> list[CacheEntry]:
        sql = f"SELECT * FROM `{self.entries_table}`"
        params = []
        if client_id is not None:
            sql += " WHERE client_id = @client_id"
            params.append(bigquery.ScalarQueryParameter("client_id", "STRING", client_id))
        sql += " ORDER BY client_id, platform, period_id"
        return [self._row_to_entry(row) for row in self._run(sql, params)]

    def try_acquire_refresh(self, key: CacheKey, now: datetime, lock_ttl: timedelta) -> bool:
        sql = f"""
        UPDATE `{self.entries_table}`
        SET refresh_in_progress = TRUE, refresh_started_at = @now
        WHERE {self._ENTRY_WHERE}
            AND (
                refresh_in_progress IS NOT TRUE
                OR refresh_started_at IS NULL
                OR refresh_started_at <= @expired_before
            )
        """
        params = self._key_params(key) + [
            bigquery.ScalarQueryParameter("now", "TIMESTAMP", now),
            bigquery.ScalarQueryParameter("expired_before", "TIMESTAMP", now - lock_ttl),
        ]
        result = self._run(sql, params)
        acquired = (result.num_dml_affected_rows or 0) > 0
        logger.debug(f"Refresh lock for {key}: {'acquired' if acquired else 'busy'}")
        return acquired

    def release_refresh(self, key: CacheKey, held_since: datetime | None = None) -> None:
        sql = f"""
        UPDATE `{self.entries_table}` AS target
        SET refresh_in_progress = FALSE, refresh_started_at = NULL
        WHERE {self._ENTRY_WHERE}
            AND {self._HOLDS_LOCK}
        """
        params = self._key_params(key) + [bigquery.ScalarQueryParameter("held_since", "TIMESTAMP", held_since)]
        self._run(sql, params)

    # Period summaries

    def get_summary(self, key: SummaryKey) -> PeriodSummary | None:
        sql = f"""
        SELECT summary
        FROM `{self.summaries_table}`
        WHERE client_id = @client_id
            AND platform = @platform
            AND period_type = @period_type
            AND period_start = @period_start
        """
        params = [
            bigquery.ScalarQueryParameter("client_id", "STRING", key.client_id),
            bigquery.ScalarQueryParameter("platform", "STRING", key.platform.value),
            bigquery.ScalarQueryParameter("period_type", "STRING", key.period_type.value),
            bigquery.ScalarQueryParameter("period_start", "DATE", key.period_start),
        ]
        rows = list(self._run(sql, params))
        if not rows:
            return None
        return PeriodSummary.from_dict(_json_field(rows[0]["summary"]))

    def upsert_summary(self, summary: PeriodSummary) -> None:
        sql = f"""
        MERGE `{self.summaries_table}` AS target
        USING (
            SELECT
                @client_id AS client_id,
                @platform AS platform,
                @period_type AS period_type,
                @period_start AS period_start
        ) AS source
        ON target.client_id = source.client_id
            AND target.platform = source.platform
            AND target.period_type = source.period_type
            AND target.period_start = source.period_start
        WHEN MATCHED THEN
            UPDATE SET
                period_end = @period_end,
                spend = @spend,
                impressions = @impressions,
                clicks = @clicks,
                campaign_count = @campaign_count,
                data_source = @data_source,
                summary = PARSE_JSON(@summary),
                updated_at = @updated_at
        WHEN NOT MATCHED THEN
            INSERT (
                client_id, platform, period_type, period_start, period_end,
                spend, impressions, clicks, campaign_count, data_source,
                summary, updated_at
            )
            VALUES (
                @client_id, @platform, @period_type, @period_start, @period_end,
                @spend, @impressions, @clicks, @campaign_count, @data_source,
                PARSE_JSON(@summary), @updated_at
            )
        """
        params = [
            bigquery.ScalarQueryParameter("client_id", "STRING", summary.client_id),
            bigquery.ScalarQueryParameter("platform", "STRING", summary.platform.value),
            bigquery.ScalarQueryParameter("period_type", "STRING", summary.period_type.value),
            bigquery.ScalarQueryParameter("period_start", "DATE", summary.period_start),
            bigquery.ScalarQueryParameter("period_end", "DATE", summary.period_end),
            bigquery.ScalarQueryParameter("spend", "FLOAT64", summary.spend),
            bigquery.ScalarQueryParameter("impressions", "INT64", summary.impressions),
            bigquery.ScalarQueryParameter("clicks", "INT64", summary.clicks),
            bigquery.ScalarQueryParameter("campaign_count", "INT64", summary.campaign_count),
            bigquery.ScalarQueryParameter("data_source", "STRING", summary.data_source.value),
            bigquery.ScalarQueryParameter("summary", "STRING", json.dumps(summary.to_dict())),
            bigquery.ScalarQueryParameter("updated_at", "TIMESTAMP", datetime.now(UTC)),
        ]
        self._run(sql, params)
        logger.info(
            f"Upserted {summary.period_type.value} summary for {summary.client_id}/"
            f"{summary.platform.value} starting {summary.period_start} ({summary.data_source.value})"
        )

    def list_summaries(
        self,
        client_id: str,
        platform: Platform,
        period_type: PeriodType,
        start: date | None = None,
        end: date | None = None,
    ) -> list[PeriodSummary]:
        sql = f"""
        SELECT summary
        FROM `{self.summaries_table}`
        WHERE client_id = @client_id
            AND platform = @platform
            AND period_type = @period_type
        """
        params = [
            bigquery.ScalarQueryParameter("client_id", "STRING", client_id),
            bigquery.ScalarQueryParameter("platform", "STRING", platform.value),
            bigquery.ScalarQueryParameter("period_type", "STRING", period_type.value),
        ]
        if start is not None:
            sql += " AND period_start >= @start"
            params.append(bigquery.ScalarQueryParameter("start", "DATE", start))
        if end is not None:
            sql += " AND period_start <= @end"
            params.append(bigquery.ScalarQueryParameter("end", "DATE", end))
        sql += " ORDER BY period_start"
        return [PeriodSummary.from_dict(_json_field(row["summary"])) for row in self._run(sql, params)]

    def delete_summaries_before(self, cutoff: date) -> int:
        sql = f"""
        DELETE FROM `{self.summaries_table}`
        WHERE period_start < @cutoff
        """
        result = self._run(sql, [bigquery.ScalarQueryParameter("cutoff", "DATE", cutoff)])
        deleted = result.num_dml_affected_rows or 0
        if deleted:
            logger.info(f"Deleted {deleted} summaries older than {cutoff}")
        return deleted

    def _row_to_entry(self, row: Any) -> CacheEntry:
        """Convert a BigQuery row to CacheEntry."""
        return CacheEntry(
            key=CacheKey(row["client_id"], Platform(row["platform"]), row["period_id"]),
            summary=PeriodSummary.from_dict(_json_field(row["summary"])),
            last_updated=_as_datetime(row["last_updated"]),
            refresh_in_progress=bool(row.get("refresh_in_progress")),
            refresh_started_at=_as_datetime(row["refresh_started_at"]) if row.get("refresh_started_at") else None,
        )


def _as_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    parsed = datetime.fromisoformat(str(value))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
