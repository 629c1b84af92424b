"""
AdLedger Aggregation - campaign records to period summaries.

Provides:
- Calendar periods, range classification and greedy decomposition
- PeriodAggregator (build, aggregate, rollup)
- Multi-platform unifier
- Scheduled close-out batch runner
- Data lifecycle (archive ended cache entries, retention cleanup)

Usage:
    from adledger.aggregation import PeriodAggregator, unify

    summary = PeriodAggregator(store).aggregate(
        "hotel_1", Platform.META, PeriodType.MONTHLY, date(2026, 9, 1), records
    )
    combined = unify({Platform.META: summary, Platform.GOOGLE_ADS: google_summary})
"""

from adledger.aggregation.aggregator import (
    PeriodAggregator,
    combine_summaries,
    merge_campaign_lines,
)
from adledger.aggregation.batch import BatchResult, BatchRunner, CloseOutJob
from adledger.aggregation.exceptions import (
    AggregationError,
    InvalidDateRangeError,
    PartialAggregationError,
)
from adledger.aggregation.lifecycle import ArchiveResult, DataLifecycleManager
from adledger.aggregation.periods import (
    Period,
    RangeKind,
    classify,
    decompose,
    validate_range,
)
from adledger.aggregation.unifier import (
    CombinedTotals,
    Totals,
    UnifiedCampaign,
    tag_campaigns,
    unify,
    unify_campaigns,
    unify_totals,
)

__all__ = [
    # Periods
    "Period",
    "RangeKind",
    "classify",
    "decompose",
    "validate_range",
    # Aggregator
    "PeriodAggregator",
    "combine_summaries",
    "merge_campaign_lines",
    # Unifier
    "Totals",
    "CombinedTotals",
    "UnifiedCampaign",
    "unify",
    "unify_totals",
    "unify_campaigns",
    "tag_campaigns",
    # Batch
    "CloseOutJob",
    "BatchResult",
    "BatchRunner",
    # Lifecycle
    "DataLifecycleManager",
    "ArchiveResult",
    # Exceptions
    "AggregationError",
    "InvalidDateRangeError",
    "PartialAggregationError",
]
