"""
Abstract billing backend and shared types for cost analysis.

Defines the enums used by cost queries, the permission payload models, the
error hierarchy, and the interface every billing backend must implement.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from pydantic import BaseModel, field_validator


class TimeGranularity(Enum):
    """Supported time granularities for cost queries."""

    NONE = "None"
    DAILY = "Daily"


class Dimension(Enum):
    """Cost grouping dimensions accepted by the billing backend."""

    RESOURCE_LOCATION = "ResourceLocation"
    RESOURCE_TYPE = "ResourceType"
    METER_CATEGORY = "MeterCategory"
    SERVICE_NAME = "ServiceName"
    RESOURCE_ID = "ResourceId"
    SUBSCRIPTION_ID = "SubscriptionId"
    RESOURCE_GROUP = "ResourceGroup"
    TAGS = "Tags"

    @property
    def label(self) -> str:
        """Display label used for table columns and option lists."""
        return DIMENSION_LABELS[self]


DIMENSION_LABELS = {
    Dimension.RESOURCE_LOCATION: "Location",
    Dimension.RESOURCE_TYPE: "Resource Type",
    Dimension.METER_CATEGORY: "Meter Category",
    Dimension.SERVICE_NAME: "Service Name",
    Dimension.RESOURCE_ID: "Resource",
    Dimension.SUBSCRIPTION_ID: "Subscription",
    Dimension.RESOURCE_GROUP: "Resource Group",
    Dimension.TAGS: "Tags",
}


class EnvironmentSetupStatus(BaseModel):
    """Cost-read permission status of one Azure environment."""

    azure_environment_id: str
    environment_name: str = "Azure Environment"
    has_cost_access: bool = False
    setup_status: str = "NotTested"
    last_error: str | None = None
    missing_permissions: list[str] = []
    subscription_ids: list[str] = []

    @field_validator("environment_name")
    @classmethod
    def validate_environment_name(cls, v: str) -> str:
        """Fall back to a generic label for blank names."""
        stripped = v.strip()
        return stripped if stripped else "Azure Environment"


class SetupInstructions(BaseModel):
    """Human-readable steps to grant cost-read access to an environment."""

    azure_environment_id: str
    role_name: str = "Cost Management Reader"
    scope: str = ""
    azure_cli_command: str = ""
    powershell_command: str = ""
    steps: list[str] = []


class CostAnalysisError(Exception):
    """Base exception for cost analysis errors."""

    pass


class NoClientSelectedError(CostAnalysisError):
    """Raised when a query is submitted without a selected client."""

    pass


class QueryValidationError(CostAnalysisError, ValueError):
    """Raised for invalid query builder input."""

    pass


class RequestInProgressError(CostAnalysisError):
    """Raised when the same kind of request is already outstanding."""

    def __init__(self, operation: str):
        super().__init__(f"A {operation} request is already in progress")
        self.operation = operation


class PermissionStateError(CostAnalysisError):
    """Raised for a permission gate transition that is not allowed."""

    pass


class ConfigurationError(CostAnalysisError):
    """Configuration-related errors."""

    pass


class APIError(CostAnalysisError):
    """Billing backend request failures."""

    def __init__(self, message: str, status_code: int | None = None, provider: str | None = None):
        super().__init__(message)
        self.status_code = status_code
        self.provider = provider


class AccessDeniedError(APIError):
    """The backend reported missing cost-read permissions."""

    def __init__(
        self,
        message: str,
        environments: list[EnvironmentSetupStatus] | None = None,
        provider: str | None = None,
    ):
        super().__init__(message, status_code=400, provider=provider)
        self.environments = environments or []


class BillingBackend(ABC):
    """Abstract base class for billing backends."""

    def __init__(self, config: dict[str, Any]):
        """
        Initialize the backend with configuration.

        Args:
            config: Backend-specific configuration dictionary
        """
        self.config = config
        self.provider_name = self._get_provider_name()

    @abstractmethod
    def _get_provider_name(self) -> str:
        """Return the backend name."""
        pass

    @abstractmethod
    async def query_costs(
        self, client_id: str, query: dict[str, Any], include_previous_period: bool = True
    ) -> dict[str, Any]:
        """
        Run a cost query for a client.

        Args:
            client_id: Identifier of the selected client/tenant
            query: Serialized query in the backend's wire format
            include_previous_period: Whether the previous period is compared

        Returns:
            The raw response body, in the backend's own field casing

        Raises:
            AccessDeniedError: If environments lack cost-read access
            APIError: If the request fails for any other reason
        """
        pass

    @abstractmethod
    async def get_setup_instructions(self, environment_id: str) -> dict[str, Any]:
        """
        Retrieve setup instructions for an environment.

        Args:
            environment_id: Azure environment identifier

        Returns:
            The raw instructions payload
        """
        pass

    @abstractmethod
    async def check_cost_permissions(self, environment_id: str) -> bool:
        """
        Check whether an environment currently has cost-read access.

        Args:
            environment_id: Azure environment identifier

        Returns:
            True if the environment can read cost data
        """
        pass

    async def close(self):
        """Release any held connections."""
        pass


class ProviderFactory:
    """Factory class for creating billing backend instances."""

    _providers = {}

    @classmethod
    def register_provider(cls, name: str, provider_class: type):
        """Register a backend class with the factory."""
        cls._providers[name.lower()] = provider_class

    @classmethod
    def create_provider(cls, name: str, config: dict[str, Any]) -> BillingBackend:
        """
        Create a backend instance.

        Args:
            name: Backend name
            config: Backend configuration

        Returns:
            Backend instance

        Raises:
            ValueError: If backend not found
        """
        name = name.lower()
        if name not in cls._providers:
            available = ", ".join(cls._providers.keys())
            raise ValueError(f"Unknown provider '{name}'. Available providers: {available}")

        provider_class = cls._providers[name]
        return provider_class(config)

    @classmethod
    def get_available_providers(cls) -> list[str]:
        """Get list of available backend names."""
        return list(cls._providers.keys())
