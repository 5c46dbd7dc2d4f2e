"""
Daily cost calendar.

Groups the per-day costs of every line item into calendar months for the
calendar view. Only months that actually contain cost data are returned.
"""

import calendar as std_calendar
import logging
from collections import defaultdict
from datetime import date

from pydantic import BaseModel, Field

from .models import CostLineItem

logger = logging.getLogger(__name__)


class CalendarDay(BaseModel):
    date: date
    total_cost: float = 0.0
    item_costs: dict[str, float] = Field(default_factory=dict)


class CalendarMonth(BaseModel):
    year: int
    month: int
    days: list[CalendarDay] = Field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{std_calendar.month_name[self.month]} {self.year}"

    @property
    def total_cost(self) -> float:
        return sum(day.total_cost for day in self.days)


def build_cost_calendar(items: list[CostLineItem]) -> list[CalendarMonth]:
    """
    Build month buckets from the daily costs of the given items.

    Args:
        items: Line items, usually from a Daily granularity query

    Returns:
        Months in chronological order, each with its days sorted
    """
    by_day: dict[date, dict[str, float]] = defaultdict(dict)
    for item in items:
        for daily in item.daily_costs:
            costs = by_day[daily.date]
            costs[item.name] = costs.get(item.name, 0.0) + daily.cost

    if not by_day:
        return []

    months: dict[tuple[int, int], CalendarMonth] = {}
    for day in sorted(by_day):
        key = (day.year, day.month)
        if key not in months:
            months[key] = CalendarMonth(year=day.year, month=day.month)
        item_costs = by_day[day]
        months[key].days.append(
            CalendarDay(date=day, total_cost=sum(item_costs.values()), item_costs=item_costs)
        )

    logger.debug(f"Built cost calendar with {len(by_day)} days across {len(months)} month(s)")
    return list(months.values())
