"""
Tests for period-over-period comparison math and result models.
"""

import pytest
from pydantic import ValidationError

from src.analysis.comparison import apply_change, compute_change, summarize
from src.analysis.models import (
    PERCENTAGE_NOT_APPLICABLE,
    CostAnalysisResult,
    CostLineItem,
    CostSummary,
)


class TestComputeChange:
    """Test cases for compute_change."""

    def test_increase(self):
        change = compute_change(100.0, 150.0)

        assert change.difference == 50.0
        assert change.percentage == pytest.approx(50.0)

    def test_decrease(self):
        change = compute_change(200.0, 50.0)

        assert change.difference == -150.0
        assert change.percentage == pytest.approx(-75.0)

    def test_new_cost_is_not_applicable(self):
        change = compute_change(0.0, 20.0)

        assert change.difference == 20.0
        assert change.percentage == PERCENTAGE_NOT_APPLICABLE

    def test_negative_current_from_zero_is_not_applicable(self):
        """Credits appearing without a baseline have no meaningful percentage either."""
        assert compute_change(0.0, -5.0).percentage == PERCENTAGE_NOT_APPLICABLE

    def test_both_zero(self):
        change = compute_change(0.0, 0.0)

        assert change.difference == 0.0
        assert change.percentage == 0.0

    def test_cost_dropped_to_zero(self):
        assert compute_change(40.0, 0.0).percentage == pytest.approx(-100.0)

    def test_unchanged(self):
        assert compute_change(30.0, 30.0).percentage == 0.0

    def test_sub_cent_values(self):
        change = compute_change(0.002, 0.004)

        assert change.percentage == pytest.approx(100.0)


class TestApplyChange:
    def test_overrides_upstream_percentage(self):
        item = CostLineItem(previous_period_cost=100.0, current_period_cost=110.0, percentage_change=99.0)

        updated = apply_change(item)

        assert updated.percentage_change == pytest.approx(10.0)
        assert updated.cost_difference == pytest.approx(10.0)
        assert item.percentage_change == 99.0

    def test_new_item_flag(self):
        updated = apply_change(CostLineItem(current_period_cost=5.0))

        assert updated.is_new is True


class TestSummarize:
    """Test cases for aggregate summaries."""

    def test_totals_from_items(self):
        items = [
            apply_change(CostLineItem(previous_period_cost=100.0, current_period_cost=150.0)),
            apply_change(CostLineItem(previous_period_cost=0.0, current_period_cost=50.0)),
        ]

        summary = summarize(items)

        assert summary.total_previous_period_cost == 100.0
        assert summary.total_current_period_cost == 200.0
        assert summary.total_cost_difference == 100.0
        assert summary.total_percentage_change == pytest.approx(100.0)
        assert summary.item_count == 2

    def test_explicit_totals_take_precedence(self):
        items = [CostLineItem(previous_period_cost=10.0, current_period_cost=20.0)]

        summary = summarize(items, total_previous=50.0, total_current=25.0)

        assert summary.total_cost_difference == -25.0
        assert summary.total_percentage_change == pytest.approx(-50.0)
        assert summary.item_count == 1

    def test_empty(self):
        summary = summarize([])

        assert summary.item_count == 0
        assert summary.total_percentage_change == 0.0
        assert summary.currency == "USD"

    def test_aggregate_new_spend(self):
        summary = summarize([CostLineItem(current_period_cost=12.0)])

        assert summary.total_percentage_change == PERCENTAGE_NOT_APPLICABLE

    def test_currency_from_first_item(self):
        summary = summarize([CostLineItem(currency="EUR", current_period_cost=1.0)])

        assert summary.currency == "EUR"


class TestModels:
    def test_difference_is_derived(self):
        item = CostLineItem(previous_period_cost=3.0, current_period_cost=1.0, cost_difference=42.0)

        assert item.cost_difference == -2.0

    def test_line_item_defaults(self):
        item = CostLineItem()

        assert item.name == "Unknown"
        assert item.resource_type == "Unknown"
        assert item.daily_costs == []

    def test_result_item_count_must_match(self):
        with pytest.raises(ValidationError):
            CostAnalysisResult(items=[CostLineItem()], summary=CostSummary(item_count=2))

    def test_empty_result(self):
        result = CostAnalysisResult()

        assert result.items == []
        assert result.has_daily_costs is False
