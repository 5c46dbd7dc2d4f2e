"""
Tests for backend response normalization.

Covers casing tolerance, defaulting of missing fields and the recomputation
of comparison values.
"""

from datetime import date

import pytest

from src.analysis.models import PERCENTAGE_NOT_APPLICABLE
from src.query.builder import QuerySpecBuilder
from src.utils.data_normalizer import CostDataNormalizer, pick, to_bool, to_date, to_float


@pytest.fixture
def normalizer():
    return CostDataNormalizer()


class TestHelpers:
    def test_pick_prefers_first_non_null_candidate(self):
        assert pick({"Name": None, "name": "b"}, ("Name", "name")) == "b"
        assert pick({"Name": "a", "name": "b"}, ("Name", "name")) == "a"

    def test_pick_on_non_dict(self):
        assert pick(["Name"], ("Name",), "fallback") == "fallback"

    def test_to_float(self):
        assert to_float("12.5") == 12.5
        assert to_float("n/a") == 0.0
        assert to_float(None, 1.0) == 1.0
        assert to_float(True) == 0.0

    def test_to_bool(self):
        assert to_bool("true") is True
        assert to_bool("False") is False
        assert to_bool(1) is True
        assert to_bool(None) is False

    def test_to_date(self):
        assert to_date("2024-02-01T00:00:00Z") == date(2024, 2, 1)
        assert to_date("2024-02-01") == date(2024, 2, 1)
        assert to_date("yesterday") is None
        assert to_date(None) is None


class TestNormalizeItem:
    """Test cases for line item normalization."""

    def test_pascal_case(self, normalizer, sample_raw_response):
        item = normalizer.normalize_item(sample_raw_response["Items"][0])

        assert item.name == "sql-prod-01"
        assert item.resource_type == "Microsoft.Sql/servers"
        assert item.subscription_name == "Customer Production"
        assert item.previous_period_cost == 100.0
        assert item.current_period_cost == 150.0
        assert item.cost_difference == 50.0
        assert item.grouping_values == {"ResourceId": "/subscriptions/sub-1/sql-prod-01"}

    def test_upstream_percentage_is_recomputed(self, normalizer, sample_raw_response):
        item = normalizer.normalize_item(sample_raw_response["Items"][0])

        assert item.percentage_change == pytest.approx(50.0)

    def test_camel_and_snake_case(self, normalizer):
        camel = normalizer.normalize_item(
            {"name": "web", "resourceGroup": "rg-web", "previousPeriodCost": 1, "currentPeriodCost": 2}
        )
        snake = normalizer.normalize_item(
            {"name": "web", "resource_group": "rg-web", "previous_period_cost": 1, "current_period_cost": 2}
        )

        assert camel == snake
        assert camel.resource_group == "rg-web"

    def test_missing_fields_default(self, normalizer):
        item = normalizer.normalize_item({})

        assert item.name == "Unknown"
        assert item.resource_type == "Unknown"
        assert item.previous_period_cost == 0.0
        assert item.current_period_cost == 0.0
        assert item.percentage_change == 0.0
        assert item.currency == "USD"

    def test_null_fields_default(self, normalizer):
        item = normalizer.normalize_item({"Name": None, "CurrentPeriodCost": None, "DailyCosts": None})

        assert item.name == "Unknown"
        assert item.current_period_cost == 0.0
        assert item.daily_costs == []

    def test_non_dict_item(self, normalizer):
        assert normalizer.normalize_item("garbage").name == "Unknown"

    def test_new_cost(self, normalizer, sample_raw_response):
        item = normalizer.normalize_item(sample_raw_response["Items"][1])

        assert item.percentage_change == PERCENTAGE_NOT_APPLICABLE

    def test_daily_costs(self, normalizer, sample_raw_response):
        item = normalizer.normalize_item(sample_raw_response["Items"][0])

        assert [d.date for d in item.daily_costs] == [date(2024, 2, 1), date(2024, 2, 2)]
        assert item.daily_costs[1].cost == 7.5
        assert item.daily_costs[0].currency == "USD"

    def test_invalid_daily_entries_are_skipped(self, normalizer):
        item = normalizer.normalize_item({"DailyCosts": [{"Date": "not a date", "Cost": 1}, {"Cost": 2}]})

        assert item.daily_costs == []

    def test_currency_is_uppercased(self, normalizer):
        assert normalizer.normalize_item({"Currency": "eur"}).currency == "EUR"

    def test_default_currency(self):
        assert CostDataNormalizer("chf").normalize_item({}).currency == "CHF"


class TestNormalizeResponse:
    """Test cases for full response normalization."""

    def test_sample_response(self, normalizer, sample_raw_response):
        result = normalizer.normalize_response(sample_raw_response)

        assert len(result.items) == 3
        assert result.summary.item_count == 3
        assert result.summary.total_previous_period_cost == 130.0
        assert result.summary.total_current_period_cost == 200.0
        assert result.summary.total_cost_difference == 70.0
        assert result.summary.total_percentage_change == pytest.approx(70 / 130 * 100)

    def test_summary_totals_from_items_when_missing(self, normalizer):
        raw = {"items": [{"previousPeriodCost": 10, "currentPeriodCost": 15}, {"currentPeriodCost": 5}]}

        summary = normalizer.normalize_response(raw).summary

        assert summary.total_previous_period_cost == 10.0
        assert summary.total_current_period_cost == 20.0
        assert summary.total_percentage_change == pytest.approx(100.0)

    def test_empty_and_malformed(self, normalizer):
        for raw in ({}, None, {"Items": None}, {"Items": "x"}, []):
            result = normalizer.normalize_response(raw)
            assert result.items == []
            assert result.summary.item_count == 0

    def test_non_dict_summary_is_ignored(self, normalizer):
        result = normalizer.normalize_response({"Items": [{"CurrentPeriodCost": 1}], "Summary": "oops"})

        assert result.summary.total_current_period_cost == 1.0

    def test_query_summary_from_query(self, normalizer, fixed_now):
        spec = QuerySpecBuilder(now=fixed_now).serialize()

        result = normalizer.normalize_response({"Items": []}, query=spec, include_previous_period=False)

        assert result.summary.query_summary == spec.describe()
        assert result.query == spec
        assert result.include_previous_period is False

    def test_upstream_query_summary_wins(self, normalizer, fixed_now):
        spec = QuerySpecBuilder(now=fixed_now).serialize()

        result = normalizer.normalize_response({"Summary": {"QuerySummary": "custom"}}, query=spec)

        assert result.summary.query_summary == "custom"


class TestPermissionPayloads:
    def test_environment_status(self, normalizer):
        env = normalizer.normalize_environment_status(
            {
                "azureEnvironmentId": "env-1",
                "environmentName": "  ",
                "hasCostManagementAccess": False,
                "costManagementSetupStatus": "Failed",
                "lastError": "AuthorizationFailed",
                "missingPermissions": ["Microsoft.CostManagement/query/read"],
            }
        )

        assert env.azure_environment_id == "env-1"
        assert env.environment_name == "Azure Environment"
        assert env.setup_status == "Failed"
        assert env.last_error == "AuthorizationFailed"
        assert env.missing_permissions == ["Microsoft.CostManagement/query/read"]
        assert env.subscription_ids == []

    def test_environment_statuses(self, normalizer):
        body = {"requiresSetup": True, "environmentsNeedingSetup": [{"AzureEnvironmentId": "e1"}, {}]}

        environments = normalizer.normalize_environment_statuses(body)

        assert normalizer.requires_setup(body) is True
        assert [e.azure_environment_id for e in environments] == ["e1", "Unknown"]
        assert environments[0].setup_status == "NotTested"
        assert environments[0].last_error is None

    def test_setup_instructions(self, normalizer):
        instructions = normalizer.normalize_setup_instructions(
            {"scope": "/subscriptions/sub-1", "azureCliCommand": "az role assignment create", "steps": "one\n\ntwo"},
            "env-1",
        )

        assert instructions.azure_environment_id == "env-1"
        assert instructions.role_name == "Cost Management Reader"
        assert instructions.steps == ["one", "two"]
        assert instructions.azure_cli_command == "az role assignment create"

    def test_permission_check(self, normalizer):
        assert normalizer.normalize_permission_check({"hasCostAccess": True}) is True
        assert normalizer.normalize_permission_check({"HasCostAccess": "false"}) is False
        assert normalizer.normalize_permission_check(True) is True
        assert normalizer.normalize_permission_check(None) is False
