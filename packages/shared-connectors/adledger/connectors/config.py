"""Configuration models for ad platform accounts and clients."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, timedelta
from enum import Enum
from typing import Any


class Platform(str, Enum):
    """Supported ad platforms."""

    META = "meta"
    GOOGLE_ADS = "google_ads"


@dataclass(frozen=True)
class DateRange:
    """Inclusive calendar date range."""

    start: date
    end: date

    @property
    def days(self) -> int:
        """Number of days in the range, 0 when end precedes start."""
        return max((self.end - self.start).days + 1, 0)

    def dates(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range(self.days)]

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass
class PlatformAccount:
    """A client's account on one ad platform."""

    platform: Platform
    account_id: str

    # repr=False to prevent credential exposure in logs
    credentials: dict[str, Any] = field(default_factory=dict, repr=False)

    # Client-specific custom conversion identifiers per metric bucket
    custom_conversions: dict[str, list[str]] = field(default_factory=dict)

    enabled: bool = True


@dataclass
class Client:
    """An advertiser whose accounts are reported on.

    Owned by the surrounding application; AdLedger only reads it.
    """

    client_id: str
    name: str
    accounts: list[PlatformAccount] = field(default_factory=list)
    is_active: bool = True

    def account_for(self, platform: Platform) -> PlatformAccount | None:
        """Return the enabled account for `platform`, if any."""
        for account in self.accounts:
            if account.platform == platform and account.enabled:
                return account
        return None

    def enabled_platforms(self) -> list[Platform]:
        """Platforms with an enabled account, in declaration order."""
        platforms: list[Platform] = []
        for account in self.accounts:
            if account.enabled and account.platform not in platforms:
                platforms.append(account.platform)
        return platforms
