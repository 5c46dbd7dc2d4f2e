"""
Result table view state: sorting, zero-change filtering and column choice.
"""

from ..providers.base import DIMENSION_LABELS, Dimension
from ..query.builder import CostQuerySpec
from .models import CostLineItem

SORTABLE_FIELDS = (
    "name",
    "resource_type",
    "resource_group",
    "subscription_name",
    "previous_period_cost",
    "current_period_cost",
    "cost_difference",
    "percentage_change",
)


class CostTableView:
    """Sorting and filtering over already-normalized line items."""

    def __init__(self, sort_field: str = "current_period_cost", descending: bool = True):
        self._check_field(sort_field)
        self.sort_field = sort_field
        self.descending = descending
        self.hide_zero_changes = False

    @staticmethod
    def _check_field(field: str):
        if field not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort by '{field}'. Sortable fields: {', '.join(SORTABLE_FIELDS)}")

    def handle_sort(self, field: str):
        """Same field flips direction; a new field starts descending."""
        self._check_field(field)
        if field == self.sort_field:
            self.descending = not self.descending
        else:
            self.sort_field = field
            self.descending = True

    def _sort_key(self, item: CostLineItem):
        value = getattr(item, self.sort_field)
        if isinstance(value, (int, float)):
            return value
        return str(value or "").lower()

    def apply(self, items: list[CostLineItem]) -> list[CostLineItem]:
        """Filtered and sorted copy of the items list."""
        rows = list(items)
        if self.hide_zero_changes:
            rows = [item for item in rows if item.percentage_change != 0]
        return sorted(rows, key=self._sort_key, reverse=self.descending)


def dimension_columns(query: CostQuerySpec | None) -> list[tuple[str, str]]:
    """(dimension, label) pairs for the grouping columns, in selection order."""
    if query is None:
        return []
    return [(ref.name.value, DIMENSION_LABELS[ref.name]) for ref in query.grouping]


def show_previous_period(include_previous_period: bool | None) -> bool:
    return include_previous_period is not False


def grouping_value(item: CostLineItem, dimension: str | Dimension) -> str:
    key = dimension.value if isinstance(dimension, Dimension) else dimension
    return item.grouping_values.get(key, "")
