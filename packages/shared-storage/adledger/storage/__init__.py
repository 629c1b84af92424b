"""
AdLedger Storage - live cache entries and the historical summary store.

Provides:
- PeriodSummary / CacheEntry models and their keys
- CacheStore contract with an atomic refresh lock
- InMemoryCacheStore for tests and single-process deployments
- BigQueryCacheStore for production (MERGE upserts, CAS via conditional UPDATE)

Usage:
    from adledger.storage import BigQueryCacheStore, BigQueryStoreConfig

    store = BigQueryCacheStore(BigQueryStoreConfig.from_env())
    summary = store.get_summary(key)
"""

from adledger.storage.base import CacheStore
from adledger.storage.bigquery import BigQueryCacheStore, BigQueryStoreConfig
from adledger.storage.memory import InMemoryCacheStore
from adledger.storage.models import (
    CacheEntry,
    CacheKey,
    CampaignLine,
    DataSource,
    PeriodSummary,
    PeriodType,
    SummaryKey,
)

__all__ = [
    # Models
    "CacheEntry",
    "CacheKey",
    "CampaignLine",
    "DataSource",
    "PeriodSummary",
    "PeriodType",
    "SummaryKey",
    # Stores
    "CacheStore",
    "InMemoryCacheStore",
    "BigQueryCacheStore",
    "BigQueryStoreConfig",
]
