"""
Inbound report contract.

Envelope keys are camelCase; the nested totals, conversion metrics and
campaign lines keep the snake_case field names of the stored schema.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any

from adledger.aggregation import CombinedTotals, Totals, UnifiedCampaign
from adledger.connectors import DateRange, Platform
from adledger.conversions import ConversionMetrics

ALL_PLATFORMS = "all"


class InvalidReportRequestError(ValueError):
    """Raised when an inbound request payload is malformed."""

    pass


@dataclass
class ReportRequest:
    """One report request from the reporting or UI layer.

    `platform` is None when the request covers every enabled platform.
    """

    client_id: str
    date_range: DateRange
    platform: Platform | None = None
    force_fresh: bool = False

    @property
    def all_platforms(self) -> bool:
        return self.platform is None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReportRequest:
        """Parse `{clientId, platform, dateRange: {start, end}, forceFresh}`.

        Raises:
            InvalidReportRequestError: If a field is missing or malformed.
        """
        client_id = data.get("clientId")
        if not client_id:
            raise InvalidReportRequestError("Missing required field: clientId")

        raw_platform = data.get("platform", ALL_PLATFORMS)
        try:
            platform = None if raw_platform == ALL_PLATFORMS else Platform(raw_platform)
        except ValueError:
            raise InvalidReportRequestError(f"Unknown platform: {raw_platform!r}") from None

        raw_range = data.get("dateRange")
        if not isinstance(raw_range, dict):
            raise InvalidReportRequestError("Missing required field: dateRange")
        try:
            date_range = DateRange(date.fromisoformat(raw_range["start"]), date.fromisoformat(raw_range["end"]))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidReportRequestError(f"Invalid dateRange {raw_range!r}: {e}") from e

        return cls(
            client_id=str(client_id),
            date_range=date_range,
            platform=platform,
            force_fresh=bool(data.get("forceFresh", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "clientId": self.client_id,
            "platform": self.platform.value if self.platform else ALL_PLATFORMS,
            "dateRange": _range_dict(self.date_range),
            "forceFresh": self.force_fresh,
        }


@dataclass
class ReportResponse:
    """Unified report for one request."""

    client_id: str
    date_range: DateRange
    combined: CombinedTotals
    per_campaign: list[UnifiedCampaign]
    data_source: str
    cache_age: timedelta | None = None
    stale: bool = False
    refresh_scheduled: bool = False
    partial: bool = False
    errors: list[str] = field(default_factory=list)
    platform: Platform | None = None

    @property
    def totals(self) -> Totals:
        return self.combined.totals

    @property
    def conversion_metrics(self) -> ConversionMetrics:
        return self.combined.metrics

    @property
    def platforms(self) -> list[Platform]:
        return self.combined.platforms

    def to_dict(self) -> dict[str, Any]:
        """Convert to the camelCase response contract. cacheAge is in milliseconds."""
        return {
            "clientId": self.client_id,
            "platform": self.platform.value if self.platform else ALL_PLATFORMS,
            "dateRange": _range_dict(self.date_range),
            "totals": self.totals.to_dict(),
            "conversionMetrics": self.conversion_metrics.to_dict(),
            "perCampaign": [campaign.to_dict() for campaign in self.per_campaign],
            "byPlatform": {
                platform.value: {**totals.to_dict(), "conversion_metrics": totals.metrics.to_dict()}
                for platform, totals in self.combined.by_platform.items()
            },
            "dataSource": self.data_source,
            "cacheAge": int(self.cache_age.total_seconds() * 1000) if self.cache_age is not None else None,
            "stale": self.stale,
            "refreshScheduled": self.refresh_scheduled,
            "partial": self.partial,
            "errors": list(self.errors),
            "platforms": [p.value for p in self.platforms],
        }


def _range_dict(date_range: DateRange) -> dict[str, str]:
    return {"start": date_range.start.isoformat(), "end": date_range.end.isoformat()}
