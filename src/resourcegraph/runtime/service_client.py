"""
HTTP resource layer - delegates plan execution to remote resource services.

Makes POST /internal/resolve calls with the plan node's wire form
(ResourceQueryRequest). The service returns the nested entities.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ..core.errors import ResourceLayerError, ServiceError
from ..core.query_types import ResourceQueryResponse
from .planner import PlanNode
from .resource_layer import ResourceLayer

logger = logging.getLogger(__name__)


class ServiceResourceLayer(ResourceLayer):
    """
    Resource layer backed by remote services.

    Usage:
        layer = ServiceResourceLayer({"hr": "http://hr:8002"})
        entities = await layer.resolve(plan_node, context)

    A root node is routed to ``resource.service`` (falling back to the
    resource discriminant) and the whole subtree is sent in one request.
    """

    def __init__(
        self,
        services: dict[str, str],
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize service resource layer.

        Args:
            services: Service name -> base URL
            timeout: HTTP request timeout in seconds
            client: Optional preconfigured client (e.g. with a mock transport)
        """
        self.services = services
        self.timeout = timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create async HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def close(self):
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def service_url(self, plan: PlanNode) -> str:
        resource = plan.resource
        name = (resource.service if resource else None) or plan.name
        url = self.services.get(name)
        if url is None:
            raise ResourceLayerError(f"No service registered for '{name}'", plan.path)
        return url

    async def resolve(self, plan: PlanNode, context: Any = None) -> list[dict[str, Any]]:
        """
        Resolve a root plan node remotely.

        Raises:
            ServiceError: If the service returns an error or is unreachable
            ResourceLayerError: If the response is malformed
        """
        service_url = self.service_url(plan)
        client = await self._get_client()
        url = f"{service_url.rstrip('/')}/internal/resolve"

        try:
            response = await client.post(url, json=plan.to_request().model_dump(mode="json"))
        except httpx.RequestError as e:
            logger.warning(f"Service call to {url} failed: {e}")
            raise ServiceError(service=service_url, status_code=0, message=str(e), path=plan.path) from e

        if response.status_code != 200:
            raise ServiceError(
                service=service_url,
                status_code=response.status_code,
                message=response.text,
                path=plan.path,
            )

        try:
            return ResourceQueryResponse.model_validate(response.json()).data
        except (ValueError, ValidationError) as e:
            raise ResourceLayerError(f"Malformed response from {url}: {e}", plan.path) from e
