"""
ReportService - inbound report requests to unified cross-platform reports.

Each platform is resolved independently through the freshness arbiter. With
platform "all", one platform's failure makes the report partial; the request
fails only when every platform fails.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from adledger.aggregation import tag_campaigns, unify_totals
from adledger.cache import (
    CacheError,
    CacheFreshnessArbiter,
    Resolution,
    ResolutionSource,
    UnknownClientError,
)
from adledger.connectors import ClientDirectory, Platform
from adledger.reporting.models import ReportRequest, ReportResponse

logger = logging.getLogger(__name__)


class ReportService:
    """
    Serve report requests from the cache tiers.

    Example:
        service = ReportService(arbiter)
        response = service.handle({
            "clientId": "hotel_1",
            "platform": "all",
            "dateRange": {"start": "2026-10-01", "end": "2026-10-31"},
        })
        response["conversionMetrics"]["roas"]
    """

    def __init__(self, arbiter: CacheFreshnessArbiter, clients: ClientDirectory | None = None):
        self.arbiter = arbiter
        self.clients = clients or arbiter.clients

    def get_report(self, request: ReportRequest) -> ReportResponse:
        """Resolve and unify a report.

        Raises:
            InvalidDateRangeError: If the range is malformed or in the future.
            UnknownClientError: If the client does not exist.
            CacheError: If a single-platform request, or every platform, fails.
        """
        platforms = self._platforms(request)
        outcomes: dict[Platform, Resolution | CacheError] = {}
        for platform in platforms:
            try:
                outcomes[platform] = self.arbiter.resolve(
                    request.client_id, platform, request.date_range, request.force_fresh
                )
            except CacheError as e:
                if not request.all_platforms:
                    raise
                outcomes[platform] = e
        return self._build_response(request, outcomes)

    async def get_report_async(self, request: ReportRequest) -> ReportResponse:
        """Resolve platforms concurrently in worker threads."""
        platforms = self._platforms(request)
        results = await asyncio.gather(
            *(
                self.arbiter.resolve_async(request.client_id, platform, request.date_range, request.force_fresh)
                for platform in platforms
            ),
            return_exceptions=True,
        )
        outcomes: dict[Platform, Resolution | CacheError] = {}
        for platform, result in zip(platforms, results):
            if isinstance(result, CacheError) and request.all_platforms:
                outcomes[platform] = result
            elif isinstance(result, BaseException):
                raise result
            else:
                outcomes[platform] = result
        return self._build_response(request, outcomes)

    def handle(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Parse a request payload, build the report and return its dict form."""
        return self.get_report(ReportRequest.from_dict(payload)).to_dict()

    def _platforms(self, request: ReportRequest) -> list[Platform]:
        if request.platform is not None:
            return [request.platform]
        client = self.clients.get(request.client_id)
        if client is None:
            raise UnknownClientError(request.client_id)
        platforms = client.enabled_platforms()
        if not platforms:
            raise CacheError(f"No enabled platforms for client {request.client_id}")
        return platforms

    def _build_response(
        self, request: ReportRequest, outcomes: dict[Platform, Resolution | CacheError]
    ) -> ReportResponse:
        resolved = {p: o for p, o in outcomes.items() if isinstance(o, Resolution)}
        failed = {p: o for p, o in outcomes.items() if not isinstance(o, Resolution)}

        if failed and not resolved:
            logger.error(f"Every platform failed for {request.client_id} {request.date_range}")
            raise next(iter(failed.values()))
        for platform, error in failed.items():
            logger.warning(f"Report for {request.client_id} is missing {platform.value}: {error}")

        sources = {r.source for r in resolved.values()}
        ages = [r.cache_age for r in resolved.values() if r.cache_age is not None]
        errors = [f"{p.value}: {e}" for p, e in failed.items()]
        errors += [f"{p.value}: {e}" for p, r in resolved.items() for e in r.errors]

        return ReportResponse(
            client_id=request.client_id,
            date_range=request.date_range,
            combined=unify_totals({p: r.totals for p, r in resolved.items()}),
            per_campaign=tag_campaigns({p: r.campaigns for p, r in resolved.items()}),
            data_source=(sources.pop() if len(sources) == 1 else ResolutionSource.MIXED).value,
            cache_age=max(ages) if ages else None,
            stale=any(r.stale for r in resolved.values()),
            refresh_scheduled=any(r.refresh_scheduled for r in resolved.values()),
            partial=bool(failed) or any(r.partial for r in resolved.values()),
            errors=errors,
            platform=request.platform,
        )
