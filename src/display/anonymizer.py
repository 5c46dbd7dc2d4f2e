"""
Anonymization of cost data for screen sharing.

Replaces resource, subscription, resource group and location identifiers
with generic, index-keyed stand-ins. Applied only to display copies; the
stored query result is left untouched.
"""

import logging

from pydantic import BaseModel

from ..analysis.models import CostLineItem

logger = logging.getLogger(__name__)

# Checked in order; the first matching keyword decides the category
RESOURCE_CATEGORIES = (
    (("sql", "database"), "Database"),
    (("storage", "blob"), "Storage"),
    (("vault", "key"), "KeyVault"),
    (("app", "web"), "WebApp"),
    (("vm", "virtual"), "VM"),
    (("log", "analytics"), "LogAnalytics"),
)

SUBSCRIPTION_NAMES = ("Production", "Development", "Staging", "Testing", "Demo", "Sandbox")
ENVIRONMENTS = ("prod", "dev", "stage", "test", "demo")
APP_TYPES = ("webapp", "api", "database", "storage", "network")

LOCATION_NAMES = {
    "eastus": "East US",
    "eastus2": "East US 2",
    "westus": "West US",
    "westus2": "West US 2",
    "centralus": "Central US",
    "northcentralus": "North Central US",
    "southcentralus": "South Central US",
    "westcentralus": "West Central US",
}
DEFAULT_LOCATION = "East US"

SERVICE_NAME_KEY = "ServiceName"
LOCATION_KEY = "ResourceLocation"


class AnonymizationState(BaseModel):
    """Whether display data is anonymized; session-scoped, never persisted."""

    enabled: bool = False

    def toggle(self) -> bool:
        self.enabled = not self.enabled
        logger.info(f"Anonymization {'enabled' if self.enabled else 'disabled'}")
        return self.enabled


def index_letter(index: int) -> str:
    return chr(ord("A") + index % 26)


def anonymize_resource_name(name: str, index: int) -> str:
    if not name:
        return name
    lowered = name.lower()
    for keywords, category in RESOURCE_CATEGORIES:
        if any(keyword in lowered for keyword in keywords):
            return f"{category}-{index_letter(index)}"
    return f"Resource-{index_letter(index)}"


def anonymize_subscription_name(name: str, index: int) -> str:
    if not name:
        return name
    return SUBSCRIPTION_NAMES[(index // 5) % len(SUBSCRIPTION_NAMES)]


def anonymize_resource_group(name: str, index: int) -> str:
    if not name:
        return name
    env = ENVIRONMENTS[index % len(ENVIRONMENTS)]
    app = APP_TYPES[(index // len(ENVIRONMENTS)) % len(APP_TYPES)]
    return f"rg-{env}-{app}-001"


def anonymize_location(location: str) -> str:
    if not location:
        return location
    return LOCATION_NAMES.get(location.lower(), DEFAULT_LOCATION)


def anonymize_item(item: CostLineItem, index: int) -> CostLineItem:
    """
    Return an anonymized copy of a line item.

    Args:
        item: Line item from the stored result (not modified)
        index: Row index; the same index always yields the same output

    Returns:
        A new CostLineItem with identifying fields replaced
    """
    grouping_values = dict(item.grouping_values)
    if grouping_values.get(SERVICE_NAME_KEY):
        grouping_values[SERVICE_NAME_KEY] = anonymize_resource_name(
            grouping_values[SERVICE_NAME_KEY], index
        )
    if grouping_values.get(LOCATION_KEY):
        grouping_values[LOCATION_KEY] = anonymize_location(grouping_values[LOCATION_KEY])

    return item.model_copy(
        update={
            "name": anonymize_resource_name(item.name, index),
            "subscription_name": anonymize_subscription_name(item.subscription_name, index),
            "resource_group": anonymize_resource_group(item.resource_group, index),
            "resource_location": anonymize_location(item.resource_location),
            "grouping_values": grouping_values,
        }
    )


def anonymize_items(items: list[CostLineItem]) -> list[CostLineItem]:
    return [anonymize_item(item, index) for index, item in enumerate(items)]
