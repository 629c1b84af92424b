"""
Calendar periods and date-range classification.

Periods are calendar months, ISO weeks (Monday to Sunday) and single days.
A requested range is one of:
- closed: exactly one period, entirely before today
- open: exactly one period containing today
- custom: anything else, decomposed greedily into whole periods
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum

from adledger.aggregation.exceptions import InvalidDateRangeError
from adledger.connectors import DateRange
from adledger.storage import PeriodType


class RangeKind(str, Enum):
    """Classification of a requested date range."""

    CLOSED = "closed"
    OPEN = "open"
    CUSTOM = "custom"


def _month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


@dataclass(frozen=True)
class Period:
    """One calendar period, identified by its type and aligned start date."""

    period_type: PeriodType
    start: date

    def __post_init__(self) -> None:
        if self.period_type is PeriodType.MONTHLY and self.start.day != 1:
            raise ValueError(f"Monthly period must start on day 1, got {self.start}")
        if self.period_type is PeriodType.WEEKLY and self.start.weekday() != 0:
            raise ValueError(f"Weekly period must start on a Monday, got {self.start}")

    @classmethod
    def month_of(cls, day: date) -> Period:
        return cls(PeriodType.MONTHLY, day.replace(day=1))

    @classmethod
    def week_of(cls, day: date) -> Period:
        return cls(PeriodType.WEEKLY, day - timedelta(days=day.weekday()))

    @classmethod
    def day_of(cls, day: date) -> Period:
        return cls(PeriodType.DAILY, day)

    @classmethod
    def containing(cls, period_type: PeriodType, day: date) -> Period:
        if period_type is PeriodType.MONTHLY:
            return cls.month_of(day)
        if period_type is PeriodType.WEEKLY:
            return cls.week_of(day)
        return cls.day_of(day)

    @classmethod
    def last_completed(cls, period_type: PeriodType, today: date) -> Period:
        """Most recent period of `period_type` that ended before `today`."""
        return cls.containing(period_type, cls.containing(period_type, today).start - timedelta(days=1))

    @classmethod
    def matching(cls, date_range: DateRange) -> Period | None:
        """The period covering exactly `date_range`, if there is one."""
        for period_type in (PeriodType.MONTHLY, PeriodType.WEEKLY, PeriodType.DAILY):
            period = cls.containing(period_type, date_range.start)
            if period.start == date_range.start and period.end == date_range.end:
                return period
        return None

    @property
    def end(self) -> date:
        if self.period_type is PeriodType.MONTHLY:
            return _month_end(self.start)
        if self.period_type is PeriodType.WEEKLY:
            return self.start + timedelta(days=6)
        return self.start

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start, self.end)

    @property
    def period_id(self) -> str:
        """Stable identifier: '2026-10', '2026-W43' or '2026-10-19'."""
        if self.period_type is PeriodType.MONTHLY:
            return f"{self.start.year:04d}-{self.start.month:02d}"
        if self.period_type is PeriodType.WEEKLY:
            iso_year, iso_week, _ = self.start.isocalendar()
            return f"{iso_year:04d}-W{iso_week:02d}"
        return self.start.isoformat()

    def is_closed(self, today: date) -> bool:
        return self.end < today

    def is_open(self, today: date) -> bool:
        return self.start <= today <= self.end

    def __str__(self) -> str:
        return f"{self.period_type.value}:{self.period_id}"


def validate_range(date_range: DateRange, today: date) -> None:
    """Reject malformed ranges.

    Raises:
        InvalidDateRangeError: If end precedes start or the range starts after today.
    """
    if date_range.end < date_range.start:
        raise InvalidDateRangeError(f"Range end {date_range.end} is before start {date_range.start}")
    if date_range.start > today:
        raise InvalidDateRangeError(f"Range {date_range} starts in the future (today is {today})")


def classify(date_range: DateRange, today: date) -> tuple[RangeKind, Period | None]:
    """Classify a range relative to `today`.

    Returns:
        (kind, period) where period is the matched period for closed and open
        ranges, None for custom ones.
    """
    validate_range(date_range, today)
    period = Period.matching(date_range)
    if period is None:
        return RangeKind.CUSTOM, None
    if period.is_closed(today):
        return RangeKind.CLOSED, period
    return RangeKind.OPEN, period


def decompose(date_range: DateRange, today: date) -> list[Period]:
    """Split a range into whole months, ISO weeks and days, largest first.

    The range is clipped at today; future days contribute nothing.
    """
    validate_range(date_range, today)
    end = min(date_range.end, today)

    periods: list[Period] = []
    cursor = date_range.start
    while cursor <= end:
        if cursor.day == 1 and _month_end(cursor) <= end:
            period = Period.month_of(cursor)
        elif cursor.weekday() == 0 and cursor + timedelta(days=6) <= end:
            period = Period.week_of(cursor)
        else:
            period = Period.day_of(cursor)
        periods.append(period)
        cursor = period.end + timedelta(days=1)
    return periods
