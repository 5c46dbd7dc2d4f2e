"""
Pytest configuration and shared fixtures for cost analysis tests.

This module provides sample backend payloads, a fake billing backend and
deterministic clock/scheduler helpers used across the test modules.
"""

from datetime import datetime, timezone
from typing import Any

import pytest

from src.providers.base import AccessDeniedError, BillingBackend, EnvironmentSetupStatus


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line("markers", "integration: mark test as an integration test")


FIXED_NOW = datetime(2024, 3, 15, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now() -> datetime:
    """Reference time used for preset resolution."""
    return FIXED_NOW


@pytest.fixture
def sample_raw_response() -> dict[str, Any]:
    """Cost query response in the backend's PascalCase shape."""
    return {
        "Items": [
            {
                "Name": "sql-prod-01",
                "ResourceType": "Microsoft.Sql/servers",
                "ResourceGroup": "rg-customer-data",
                "ResourceLocation": "westeurope",
                "SubscriptionId": "sub-1",
                "SubscriptionName": "Customer Production",
                "PreviousPeriodCost": 100.0,
                "CurrentPeriodCost": 150.0,
                "PercentageChange": 12.0,
                "Currency": "USD",
                "DailyCosts": [
                    {"Date": "2024-02-01T00:00:00Z", "Cost": 5.0},
                    {"Date": "2024-02-02T00:00:00Z", "Cost": 7.5},
                ],
                "GroupingValues": {"ResourceId": "/subscriptions/sub-1/sql-prod-01"},
            },
            {
                "Name": "storageacct",
                "ResourceType": "Microsoft.Storage/storageAccounts",
                "PreviousPeriodCost": 0,
                "CurrentPeriodCost": 20.0,
                "Currency": "USD",
            },
            {
                "Name": "vm-idle",
                "PreviousPeriodCost": 30.0,
                "CurrentPeriodCost": 30.0,
            },
        ],
        "Summary": {
            "TotalPreviousPeriodCost": 130.0,
            "TotalCurrentPeriodCost": 200.0,
            "Currency": "USD",
        },
    }


@pytest.fixture
def sample_environments() -> list[EnvironmentSetupStatus]:
    return [
        EnvironmentSetupStatus(azure_environment_id="env-1", environment_name="Production"),
        EnvironmentSetupStatus(azure_environment_id="env-2", environment_name="Staging"),
    ]


class FakeBillingBackend(BillingBackend):
    """In-memory billing backend recording the calls it receives."""

    def __init__(self, config=None, response=None, error=None):
        super().__init__(config or {})
        self.response = response if response is not None else {"Items": []}
        self.error = error
        self.instructions: dict[str, Any] = {}
        self.permission_results: dict[str, bool] = {}
        self.permission_error: Exception | None = None
        self.queries: list[tuple[str, dict[str, Any], bool]] = []
        self.closed = False

    def _get_provider_name(self) -> str:
        return "fake"

    async def query_costs(self, client_id, query, include_previous_period=True):
        self.queries.append((client_id, query, include_previous_period))
        if self.error is not None:
            raise self.error
        return self.response

    async def get_setup_instructions(self, environment_id):
        if self.permission_error is not None:
            raise self.permission_error
        return self.instructions

    async def check_cost_permissions(self, environment_id):
        if self.permission_error is not None:
            raise self.permission_error
        return self.permission_results.get(environment_id, False)

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_backend(sample_raw_response) -> FakeBillingBackend:
    return FakeBillingBackend(response=sample_raw_response)


@pytest.fixture
def access_denied(sample_environments) -> AccessDeniedError:
    return AccessDeniedError("Cost analysis setup required", environments=sample_environments)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Records scheduled callbacks instead of running them."""

    def __init__(self):
        self.handles: list[FakeHandle] = []

    def __call__(self, delay, callback) -> FakeHandle:
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> list[FakeHandle]:
        return [handle for handle in self.handles if not handle.cancelled]

    def fire_pending(self):
        for handle in self.pending:
            handle.cancelled = True
            handle.callback()


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_scheduler() -> FakeScheduler:
    return FakeScheduler()
