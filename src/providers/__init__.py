"""Billing backend integrations for cost analysis."""

# Backend implementations register themselves with ProviderFactory on import
# (see providers.azure).
from .base import (
    AccessDeniedError,
    APIError,
    BillingBackend,
    CostAnalysisError,
    Dimension,
    ProviderFactory,
    TimeGranularity,
)
