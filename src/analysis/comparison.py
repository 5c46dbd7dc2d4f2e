"""
Period-over-period comparison math.

Percentages from the billing backend are never trusted: every difference and
percentage shown to the operator is recomputed here, including the
zero-baseline cases the backend may not handle the same way.
"""

import logging
from typing import NamedTuple

from .models import PERCENTAGE_NOT_APPLICABLE, CostLineItem, CostSummary

logger = logging.getLogger(__name__)


class Change(NamedTuple):
    difference: float
    percentage: float


def compute_change(previous: float, current: float) -> Change:
    """
    Compute the absolute and relative change between two period costs.

    Relative change from a zero baseline is undefined, so a cost that only
    exists in the current period reports PERCENTAGE_NOT_APPLICABLE instead
    of a number.

    Args:
        previous: Previous-period cost
        current: Current-period cost

    Returns:
        Change(difference, percentage) with percentage signed, in percent
    """
    difference = current - previous

    if previous == 0 and current != 0:
        return Change(difference, PERCENTAGE_NOT_APPLICABLE)
    if previous == 0:
        return Change(difference, 0.0)

    return Change(difference, (current - previous) / previous * 100)


def apply_change(item: CostLineItem) -> CostLineItem:
    """Return a copy of the item with difference and percentage recomputed."""
    change = compute_change(item.previous_period_cost, item.current_period_cost)
    return item.model_copy(
        update={"cost_difference": change.difference, "percentage_change": change.percentage}
    )


def summarize(
    items: list[CostLineItem],
    currency: str | None = None,
    query_summary: str = "",
    total_previous: float | None = None,
    total_current: float | None = None,
) -> CostSummary:
    """
    Aggregate line items into a summary.

    Totals default to the sums over items; explicit totals (for example from
    an upstream summary) take precedence. The aggregate percentage always
    follows compute_change.
    """
    if total_previous is None:
        total_previous = sum(item.previous_period_cost for item in items)
    if total_current is None:
        total_current = sum(item.current_period_cost for item in items)

    if currency is None:
        currency = items[0].currency if items else "USD"

    change = compute_change(total_previous, total_current)
    logger.debug(
        f"Summary of {len(items)} items: previous={total_previous:.6f}, "
        f"current={total_current:.6f}, percentage={change.percentage:.2f}"
    )

    return CostSummary(
        total_previous_period_cost=total_previous,
        total_current_period_cost=total_current,
        total_cost_difference=change.difference,
        total_percentage_change=change.percentage,
        currency=currency,
        item_count=len(items),
        query_summary=query_summary,
    )
