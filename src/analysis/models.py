"""
Canonical cost analysis result models.

These are the shapes every consumer reads after a backend response has been
normalized. They are rebuilt on every successful query and never cached.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from ..query.builder import CostQuerySpec

PERCENTAGE_NOT_APPLICABLE = -999.0


class DailyCost(BaseModel):
    date: date
    cost: float = 0.0
    currency: str = "USD"


class CostLineItem(BaseModel):
    """One row of a cost comparison: a grouping key across both periods."""

    name: str = "Unknown"
    resource_type: str = "Unknown"
    resource_group: str = ""
    resource_location: str = ""
    subscription_id: str = ""
    subscription_name: str = ""
    previous_period_cost: float = 0.0
    current_period_cost: float = 0.0
    cost_difference: float = 0.0
    percentage_change: float = 0.0
    currency: str = "USD"
    daily_costs: list[DailyCost] = Field(default_factory=list)
    grouping_values: dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def validate_difference(self):
        """The difference is always derived from the two period costs."""
        self.cost_difference = self.current_period_cost - self.previous_period_cost
        return self

    @property
    def is_new(self) -> bool:
        """Cost appeared in the current period without a previous baseline."""
        return self.percentage_change == PERCENTAGE_NOT_APPLICABLE


class CostSummary(BaseModel):
    """Aggregate of all line items."""

    total_previous_period_cost: float = 0.0
    total_current_period_cost: float = 0.0
    total_cost_difference: float = 0.0
    total_percentage_change: float = 0.0
    currency: str = "USD"
    item_count: int = 0
    query_summary: str = ""


class CostAnalysisResult(BaseModel):
    """Normalized response of one cost query."""

    items: list[CostLineItem] = Field(default_factory=list)
    summary: CostSummary = Field(default_factory=CostSummary)
    query: CostQuerySpec | None = None
    include_previous_period: bool = True
    generated_at: datetime = Field(default_factory=datetime.now)

    @model_validator(mode="after")
    def validate_item_count(self):
        if self.summary.item_count != len(self.items):
            raise ValueError(
                f"Summary item count {self.summary.item_count} doesn't match {len(self.items)} items"
            )
        return self

    @property
    def has_daily_costs(self) -> bool:
        return any(item.daily_costs for item in self.items)
