"""
Date presets for cost queries.

Resolves preset keys such as ``lastMonth`` into concrete, inclusive UTC
time periods relative to a reference "now", and derives the comparison
(previous) period for a selected range.
"""

import calendar
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..providers.base import QueryValidationError

WIRE_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


class TimePeriod(BaseModel):
    """Inclusive query window, start-of-day to end-of-day in UTC."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: datetime = Field(alias="from")
    to: datetime

    @classmethod
    def from_dates(cls, start: date, end: date) -> "TimePeriod":
        """Build a period covering whole calendar days from start to end."""
        return cls(
            from_=datetime.combine(start, time(0, 0, 0), tzinfo=timezone.utc),
            to=datetime.combine(end, time(23, 59, 59), tzinfo=timezone.utc),
        )

    @model_validator(mode="after")
    def validate_range(self):
        if self.from_ > self.to:
            raise ValueError(f"Period start {self.from_} must not be after end {self.to}")
        return self

    @property
    def start_date(self) -> date:
        return self.from_.date()

    @property
    def end_date(self) -> date:
        return self.to.date()

    @property
    def days(self) -> int:
        """Number of calendar days covered."""
        return (self.end_date - self.start_date).days + 1

    def to_wire(self) -> dict[str, str]:
        return {"from": self.from_.strftime(WIRE_FORMAT), "to": self.to.strftime(WIRE_FORMAT)}


@dataclass(frozen=True)
class DatePreset:
    """A named date range evaluated against the current time on every use."""

    key: str
    label: str
    resolve: Callable[[date], tuple[date, date]]


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    """Move a (year, month) pair by delta months; month is 1-based."""
    year_offset, month_index = divmod(month - 1 + delta, 12)
    return year + year_offset, month_index + 1


def _month_start(year: int, month: int) -> date:
    return date(year, month, 1)


def _month_end(year: int, month: int) -> date:
    return date(year, month, calendar.monthrange(year, month)[1])


def _last_month(today: date) -> tuple[date, date]:
    year, month = _shift_month(today.year, today.month, -1)
    return _month_start(year, month), _month_end(year, month)


def _this_month(today: date) -> tuple[date, date]:
    return today.replace(day=1), today


def _months_back(months: int) -> Callable[[date], tuple[date, date]]:
    def resolve(today: date) -> tuple[date, date]:
        year, month = _shift_month(today.year, today.month, -months)
        return _month_start(year, month), today

    return resolve


def _last_quarter(today: date) -> tuple[date, date]:
    # quarter_start is the 0-based first month of the current quarter
    quarter_start = (today.month - 1) // 3 * 3
    start_year, start_month = _shift_month(today.year, quarter_start + 1, -3)
    end_year, end_month = _shift_month(today.year, quarter_start + 1, -1)
    return _month_start(start_year, start_month), _month_end(end_year, end_month)


def _year_to_date(today: date) -> tuple[date, date]:
    return date(today.year, 1, 1), today


DATE_PRESETS: dict[str, DatePreset] = {
    preset.key: preset
    for preset in (
        DatePreset("lastMonth", "Last Month", _last_month),
        DatePreset("thisMonth", "This Month to Date", _this_month),
        DatePreset("last3Months", "Last 3 Months", _months_back(3)),
        DatePreset("last6Months", "Last 6 Months", _months_back(6)),
        DatePreset("lastQuarter", "Last Quarter", _last_quarter),
        DatePreset("yearToDate", "Year to Date", _year_to_date),
    )
}


def utc_today(now: datetime | date | None = None) -> date:
    """Calendar date of ``now`` in UTC; naive datetimes are taken as UTC."""
    if now is None:
        now = datetime.now(timezone.utc)
    if isinstance(now, datetime):
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc)
        return now.date()
    return now


def get_preset(key: str) -> DatePreset:
    try:
        return DATE_PRESETS[key]
    except KeyError:
        available = ", ".join(DATE_PRESETS)
        raise QueryValidationError(f"Unknown date preset '{key}'. Available presets: {available}")


def resolve_preset(key: str, now: datetime | date | None = None) -> TimePeriod:
    """
    Resolve a preset key to a concrete time period.

    Args:
        key: Preset key, e.g. ``lastMonth``
        now: Reference time; defaults to the current UTC time

    Returns:
        TimePeriod with inclusive start-of-day/end-of-day UTC bounds

    Raises:
        QueryValidationError: If the key is not a known preset
    """
    start, end = get_preset(key).resolve(utc_today(now))
    return TimePeriod.from_dates(start, end)


def previous_period(period: TimePeriod) -> TimePeriod:
    """
    Comparison window immediately preceding ``period``.

    A whole calendar month compares against the previous whole month; any
    other range compares against the same number of days just before it.
    """
    start, end = period.start_date, period.end_date
    is_full_month = start.day == 1 and end == _month_end(end.year, end.month) and (
        start.year,
        start.month,
    ) == (end.year, end.month)

    if is_full_month:
        year, month = _shift_month(start.year, start.month, -1)
        return TimePeriod.from_dates(_month_start(year, month), _month_end(year, month))

    previous_end = start - timedelta(days=1)
    previous_start = previous_end - timedelta(days=period.days - 1)
    return TimePeriod.from_dates(previous_start, previous_end)
