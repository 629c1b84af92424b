"""
AdLedger Reporting - inbound report contract over the cache tiers.

Usage:
    from adledger.reporting import ReportRequest, ReportService

    service = ReportService(arbiter)
    response = service.get_report(ReportRequest.from_dict(payload))
    response.to_dict()
"""

from adledger.reporting.models import (
    ALL_PLATFORMS,
    InvalidReportRequestError,
    ReportRequest,
    ReportResponse,
)
from adledger.reporting.service import ReportService

__all__ = [
    "ALL_PLATFORMS",
    "InvalidReportRequestError",
    "ReportRequest",
    "ReportResponse",
    "ReportService",
]
