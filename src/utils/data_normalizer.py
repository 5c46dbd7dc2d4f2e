"""
Response normalization for cost analysis.

The billing backend answers in its own field casing (PascalCase) and omits
optional fields freely. These helpers map such payloads onto the canonical
models, defaulting every missing or null field instead of raising.
"""

import logging
from datetime import date, datetime
from typing import Any

from ..analysis.comparison import apply_change, summarize
from ..analysis.models import CostAnalysisResult, CostLineItem, DailyCost
from ..providers.base import EnvironmentSetupStatus, SetupInstructions
from ..query.builder import CostQuerySpec

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


class FieldNames:
    """Candidate source keys per canonical field, checked in order."""

    ITEMS = ("Items", "items")
    SUMMARY = ("Summary", "summary")

    ITEM = {
        "name": ("Name", "name"),
        "resource_type": ("ResourceType", "resourceType", "resource_type"),
        "resource_group": ("ResourceGroup", "resourceGroup", "resource_group"),
        "resource_location": ("ResourceLocation", "resourceLocation", "resource_location"),
        "subscription_id": ("SubscriptionId", "subscriptionId", "subscription_id"),
        "subscription_name": ("SubscriptionName", "subscriptionName", "subscription_name"),
        "previous_period_cost": ("PreviousPeriodCost", "previousPeriodCost", "previous_period_cost"),
        "current_period_cost": ("CurrentPeriodCost", "currentPeriodCost", "current_period_cost"),
        "currency": ("Currency", "currency"),
        "daily_costs": ("DailyCosts", "dailyCosts", "daily_costs"),
        "grouping_values": ("GroupingValues", "groupingValues", "grouping_values"),
    }

    DAILY = {
        "date": ("Date", "date"),
        "cost": ("Cost", "cost"),
        "currency": ("Currency", "currency"),
    }

    SUMMARY_FIELDS = {
        "total_previous_period_cost": (
            "TotalPreviousPeriodCost",
            "totalPreviousPeriodCost",
            "total_previous_period_cost",
        ),
        "total_current_period_cost": (
            "TotalCurrentPeriodCost",
            "totalCurrentPeriodCost",
            "total_current_period_cost",
        ),
        "currency": ("Currency", "currency"),
        "query_summary": ("QuerySummary", "querySummary", "query_summary"),
    }

    REQUIRES_SETUP = ("RequiresSetup", "requiresSetup", "requires_setup")
    ENVIRONMENTS = ("EnvironmentsNeedingSetup", "environmentsNeedingSetup", "environments_needing_setup")
    MESSAGE = ("Message", "message")
    HAS_COST_ACCESS = ("HasCostAccess", "hasCostAccess", "has_cost_access")

    ENVIRONMENT = {
        "azure_environment_id": ("AzureEnvironmentId", "azureEnvironmentId", "azure_environment_id"),
        "environment_name": ("EnvironmentName", "environmentName", "environment_name"),
        "has_cost_access": (
            "HasCostManagementAccess",
            "hasCostManagementAccess",
            "HasCostAccess",
            "hasCostAccess",
            "has_cost_access",
        ),
        "setup_status": (
            "CostManagementSetupStatus",
            "costManagementSetupStatus",
            "setup_status",
        ),
        "last_error": ("LastError", "lastError", "last_error"),
        "missing_permissions": ("MissingPermissions", "missingPermissions", "missing_permissions"),
        "subscription_ids": ("SubscriptionIds", "subscriptionIds", "subscription_ids"),
    }

    INSTRUCTIONS = {
        "role_name": ("RoleName", "roleName", "role_name"),
        "scope": ("Scope", "scope"),
        "azure_cli_command": ("AzureCliCommand", "azureCliCommand", "azure_cli_command"),
        "powershell_command": ("PowerShellCommand", "powerShellCommand", "powershellCommand", "powershell_command"),
        "steps": ("Steps", "steps", "Instructions", "instructions"),
    }


def pick(data: Any, candidates: tuple[str, ...], default: Any = None) -> Any:
    """Return the first non-null value among the candidate keys."""
    if not isinstance(data, dict):
        return default
    for key in candidates:
        value = data.get(key)
        if value is not None:
            return value
    return default


def to_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (ValueError, TypeError):
        logger.debug(f"Could not coerce {value!r} to a number, using {default}")
        return default


def to_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    text = str(value).strip()
    return text if text else default


def to_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def to_str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v is not None]


def to_date(value: Any) -> date | None:
    """Parse a date or ISO timestamp, keeping the calendar date of the value."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        logger.debug(f"Could not parse daily cost date {value!r}")
        return None


class CostDataNormalizer:
    """Maps raw backend payloads onto the canonical cost analysis models."""

    def __init__(self, default_currency: str = "USD"):
        """
        Initialize the normalizer.

        Args:
            default_currency: Currency assumed when a payload names none
        """
        self.default_currency = default_currency.upper()

    def get_items(self, raw: Any) -> list[Any]:
        items = pick(raw, FieldNames.ITEMS, [])
        return items if isinstance(items, list) else []

    def get_message(self, raw: Any, default: str = "") -> str:
        return to_str(pick(raw, FieldNames.MESSAGE), default)

    def requires_setup(self, raw: Any) -> bool:
        return to_bool(pick(raw, FieldNames.REQUIRES_SETUP))

    def normalize_daily_cost(self, raw: Any, currency: str) -> DailyCost | None:
        day = to_date(pick(raw, FieldNames.DAILY["date"]))
        if day is None:
            return None
        return DailyCost(
            date=day,
            cost=to_float(pick(raw, FieldNames.DAILY["cost"])),
            currency=to_str(pick(raw, FieldNames.DAILY["currency"]), currency).upper(),
        )

    def normalize_item(self, raw: Any) -> CostLineItem:
        """
        Normalize one line item.

        Args:
            raw: Item payload in any supported casing; may be partial or not a dict

        Returns:
            CostLineItem with recomputed difference and percentage
        """
        fields = FieldNames.ITEM
        currency = to_str(pick(raw, fields["currency"]), self.default_currency).upper()

        daily_costs = []
        raw_daily = pick(raw, fields["daily_costs"], [])
        for entry in raw_daily if isinstance(raw_daily, list) else []:
            daily = self.normalize_daily_cost(entry, currency)
            if daily is not None:
                daily_costs.append(daily)

        raw_grouping = pick(raw, fields["grouping_values"], {})
        grouping_values = {
            str(key): to_str(value)
            for key, value in (raw_grouping.items() if isinstance(raw_grouping, dict) else [])
        }

        item = CostLineItem(
            name=to_str(pick(raw, fields["name"]), UNKNOWN),
            resource_type=to_str(pick(raw, fields["resource_type"]), UNKNOWN),
            resource_group=to_str(pick(raw, fields["resource_group"])),
            resource_location=to_str(pick(raw, fields["resource_location"])),
            subscription_id=to_str(pick(raw, fields["subscription_id"])),
            subscription_name=to_str(pick(raw, fields["subscription_name"])),
            previous_period_cost=to_float(pick(raw, fields["previous_period_cost"])),
            current_period_cost=to_float(pick(raw, fields["current_period_cost"])),
            currency=currency,
            daily_costs=daily_costs,
            grouping_values=grouping_values,
        )
        return apply_change(item)

    def normalize_response(
        self,
        raw: Any,
        query: CostQuerySpec | None = None,
        include_previous_period: bool = True,
    ) -> CostAnalysisResult:
        """
        Normalize a full cost query response.

        Summary totals come from the upstream summary when it carries them and
        from the items otherwise; difference and percentage are always
        recomputed and the item count always matches the items.
        """
        items = [self.normalize_item(entry) for entry in self.get_items(raw)]

        raw_summary = pick(raw, FieldNames.SUMMARY)
        fields = FieldNames.SUMMARY_FIELDS
        total_previous = total_current = None
        if isinstance(raw_summary, dict):
            if pick(raw_summary, fields["total_previous_period_cost"]) is not None:
                total_previous = to_float(pick(raw_summary, fields["total_previous_period_cost"]))
            if pick(raw_summary, fields["total_current_period_cost"]) is not None:
                total_current = to_float(pick(raw_summary, fields["total_current_period_cost"]))
        elif raw_summary is not None:
            logger.warning(f"Ignoring summary of unexpected type {type(raw_summary).__name__}")

        currency = to_str(pick(raw_summary, fields["currency"]))
        if not currency:
            currency = items[0].currency if items else self.default_currency

        query_summary = to_str(pick(raw_summary, fields["query_summary"]))
        if not query_summary and query is not None:
            query_summary = query.describe()

        summary = summarize(
            items,
            currency=currency.upper(),
            query_summary=query_summary,
            total_previous=total_previous,
            total_current=total_current,
        )

        logger.info(f"Normalized {len(items)} cost items ({summary.currency})")
        return CostAnalysisResult(
            items=items,
            summary=summary,
            query=query,
            include_previous_period=include_previous_period,
        )

    def normalize_environment_status(self, raw: Any) -> EnvironmentSetupStatus:
        fields = FieldNames.ENVIRONMENT
        return EnvironmentSetupStatus(
            azure_environment_id=to_str(pick(raw, fields["azure_environment_id"]), UNKNOWN),
            environment_name=to_str(pick(raw, fields["environment_name"]), "Azure Environment"),
            has_cost_access=to_bool(pick(raw, fields["has_cost_access"])),
            setup_status=to_str(pick(raw, fields["setup_status"]), "NotTested"),
            last_error=to_str(pick(raw, fields["last_error"])) or None,
            missing_permissions=to_str_list(pick(raw, fields["missing_permissions"])),
            subscription_ids=to_str_list(pick(raw, fields["subscription_ids"])),
        )

    def normalize_environment_statuses(self, raw: Any) -> list[EnvironmentSetupStatus]:
        """Environments listed in an access-denied response body."""
        environments = pick(raw, FieldNames.ENVIRONMENTS, [])
        if not isinstance(environments, list):
            return []
        return [self.normalize_environment_status(env) for env in environments]

    def normalize_setup_instructions(self, raw: Any, environment_id: str) -> SetupInstructions:
        fields = FieldNames.INSTRUCTIONS
        steps = pick(raw, fields["steps"], [])
        if isinstance(steps, str):
            steps = [line for line in steps.splitlines() if line.strip()]
        return SetupInstructions(
            azure_environment_id=environment_id,
            role_name=to_str(pick(raw, fields["role_name"]), "Cost Management Reader"),
            scope=to_str(pick(raw, fields["scope"])),
            azure_cli_command=to_str(pick(raw, fields["azure_cli_command"])),
            powershell_command=to_str(pick(raw, fields["powershell_command"])),
            steps=to_str_list(steps),
        )

    def normalize_permission_check(self, raw: Any) -> bool:
        """Cost access flag of a permission check response."""
        if isinstance(raw, bool):
            return raw
        return to_bool(pick(raw, FieldNames.HAS_COST_ACCESS))
