"""Base fetcher abstract class."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from adledger.connectors.config import DateRange, Platform, PlatformAccount
from adledger.connectors.exceptions import FetchError, UpstreamError
from adledger.conversions import CampaignRecord

logger = logging.getLogger(__name__)


class BaseFetcher(ABC):
    """Abstract base class for ad platform fetchers.

    Subclasses must implement:
    - fetch_raw(): Return raw campaign rows for an account and date range

    Subclasses must set the class attribute:
    - platform: The Platform enum value served by this fetcher

    Errors must be raised from the taxonomy in `adledger.connectors.exceptions`
    (AuthError, RateLimitError, UpstreamError); retrying is the caller's job.

    Example:
        class GoogleAdsFetcher(BaseFetcher):
            platform = Platform.GOOGLE_ADS

            def fetch_raw(self, account, date_range):
                rows = self._service.search(customer_id=account.account_id, query=...)
                return [self._to_row(r) for r in rows]
    """

    platform: Platform

    def __init_subclass__(cls, **kwargs: Any) -> None:
        """Validate that subclasses define platform."""
        super().__init_subclass__(**kwargs)
        # Skip validation for abstract subclasses
        if ABC in cls.__bases__:
            return
        if not hasattr(cls, "platform") or cls.platform is None:
            raise TypeError(f"{cls.__name__} must define a 'platform' class attribute")

    @abstractmethod
    def fetch_raw(self, account: PlatformAccount, date_range: DateRange) -> list[dict[str, Any]]:
        """Return raw campaign-level rows for the date range.

        Args:
            account: Platform account to read.
            date_range: Inclusive date range.

        Returns:
            Rows accepted by CampaignRecord.from_dict().

        Raises:
            AuthError, RateLimitError, UpstreamError
        """
        pass  # pragma: no cover

    def fetch(self, account: PlatformAccount, date_range: DateRange) -> list[CampaignRecord]:
        """Fetch campaign records for `account` over `date_range`.

        Rows without a campaign id are skipped with a warning.

        Raises:
            FetchError: Any fetch failure, as a taxonomy subclass.
        """
        if account.platform != self.platform:
            raise ValueError(
                f"{type(self).__name__} serves {self.platform.value}, "
                f"got account for {account.platform.value}"
            )

        try:
            rows = self.fetch_raw(account, date_range)
        except FetchError:
            raise
        except Exception as e:
            raise UpstreamError(f"{self.platform.value} fetch failed for {account.account_id}: {e}") from e

        records = []
        for row in rows:
            try:
                records.append(CampaignRecord.from_dict(row))
            except ValueError as e:
                logger.warning(f"Skipping {self.platform.value} row for {account.account_id}: {e}")

        logger.info(
            f"Fetched {len(records)} campaigns from {self.platform.value} "
            f"account {account.account_id} for {date_range}"
        )
        return records

    def close(self) -> None:
        """Release client resources. Optional hook with a no-op default."""
        pass
