"""
Azure cost analysis backend.

Talks to the cost analysis API that fronts the Azure Cost Management Query
API: runs queries for a client and reads or checks the Cost Management Reader
permission of the client's Azure environments.
"""

import logging
from typing import Any

import httpx

from ..utils.data_normalizer import CostDataNormalizer
from .base import (
    AccessDeniedError,
    APIError,
    BillingBackend,
    ConfigurationError,
    ProviderFactory,
)

logger = logging.getLogger(__name__)


class AzureCostAnalysisBackend(BillingBackend):
    """Azure billing backend reached over the cost analysis HTTP API."""

    def __init__(self, config: dict[str, Any], transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(config)

        self.base_url = (config.get("base_url") or "").rstrip("/")
        if not self.base_url:
            raise ConfigurationError("Cost analysis API base_url is required")

        self.token = config.get("token")
        self.verify_ssl = config.get("verify_ssl", True)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self.normalizer = CostDataNormalizer(config.get("default_currency", "USD"))

    def _get_provider_name(self) -> str:
        return "azure"

    def _get_client(self) -> httpx.AsyncClient:
        """Create the HTTP client on first use."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                verify=self.verify_ssl,
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send a request, turning transport failures into APIError."""
        client = self._get_client()
        try:
            return await client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"Request to {path} failed: {e}")
            raise APIError(f"Request to {path} failed: {e}", provider=self.provider_name)

    def _raise_for_status(self, response: httpx.Response, path: str):
        if response.is_success:
            return
        logger.error(f"Cost analysis API returned {response.status_code} for {path}")
        raise APIError(
            f"Cost analysis API returned {response.status_code} for {path}",
            status_code=response.status_code,
            provider=self.provider_name,
        )

    @staticmethod
    def _json_body(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    async def query_costs(
        self, client_id: str, query: dict[str, Any], include_previous_period: bool = True
    ) -> dict[str, Any]:
        """Run a cost query for a client against the analyze-with-query endpoint."""
        path = f"/costanalysis/clients/{client_id}/analyze-with-query"
        payload = {"query": query, "includePreviousPeriod": include_previous_period}

        logger.info(f"🔍 Azure: running cost query for client {client_id}")
        response = await self._request("POST", path, json=payload)

        if response.status_code == 400:
            body = self._json_body(response)
            if isinstance(body, dict) and self.normalizer.requires_setup(body):
                environments = self.normalizer.normalize_environment_statuses(body)
                logger.warning(
                    f"Cost access missing for {len(environments)} environment(s) of client {client_id}"
                )
                raise AccessDeniedError(
                    self.normalizer.get_message(body, "Cost analysis setup required"),
                    environments=environments,
                    provider=self.provider_name,
                )

        self._raise_for_status(response, path)
        body = self._json_body(response)
        if not isinstance(body, dict):
            logger.warning(f"Unexpected cost query body type {type(body).__name__}, using empty result")
            return {}

        logger.info(f"💰 Azure: received {len(self.normalizer.get_items(body))} cost items")
        return body

    async def get_setup_instructions(self, environment_id: str) -> dict[str, Any]:
        """Fetch the setup instructions for granting cost-read access."""
        path = f"/permissions/environments/{environment_id}/setup-instructions"
        response = await self._request("GET", path)
        self._raise_for_status(response, path)
        body = self._json_body(response)
        return body if isinstance(body, dict) else {}

    async def check_cost_permissions(self, environment_id: str) -> bool:
        """Ask the backend to re-check cost-read access for an environment."""
        path = f"/permissions/environments/{environment_id}/check-cost-permissions"
        response = await self._request("POST", path)
        self._raise_for_status(response, path)
        has_access = self.normalizer.normalize_permission_check(self._json_body(response))
        logger.info(f"Azure environment {environment_id} cost access: {has_access}")
        return has_access

    async def close(self):
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


# Register the Azure backend with the factory
ProviderFactory.register_provider("azure", AzureCostAnalysisBackend)
