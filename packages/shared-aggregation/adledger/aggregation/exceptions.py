"""Custom exceptions for aggregation."""

from __future__ import annotations

from adledger.connectors import Platform


class AggregationError(Exception):
    """Base exception for aggregation errors."""

    pass


class InvalidDateRangeError(AggregationError, ValueError):
    """Raised for ranges with end before start or starting after today."""

    pass


class PartialAggregationError(AggregationError):
    """One client/platform failed inside a batch; the batch carries on.

    Attributes:
        client_id: Client whose aggregation failed.
        platform: Platform that failed, or None for client-level failures.
        cause: The underlying exception.
    """

    def __init__(self, client_id: str, platform: Platform | None, cause: BaseException):
        self.client_id = client_id
        self.platform = platform
        self.cause = cause
        where = f"{client_id}/{platform.value}" if platform else client_id
        super().__init__(f"Aggregation failed for {where}: {type(cause).__name__}: {cause}")
