"""
Health check utilities for the managed serviceaccount agent.

The agent is healthy when both clusters it talks to answer: the hub, where
the ManagedServiceAccount CRD must be served, and the managed cluster, where
ServiceAccounts and tokens are created.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import MSA_GROUP, MSA_PLURAL

logger = logging.getLogger(__name__)


@dataclass
class HealthCheckResult:
    """Result of a health check operation."""

    name: str
    status: str  # "healthy", "unhealthy"
    message: str
    details: dict[str, Any] | None = None
    duration: float = 0.0
    timestamp: float = 0.0


class HealthChecker:
    """Checks connectivity to the hub and managed cluster API servers."""

    def __init__(
        self,
        hub_client: client.ApiClient,
        spoke_client: client.ApiClient,
        timeout: float = 5.0,
    ):
        """
        Initialize health checker.

        Args:
            hub_client: API client for the hub cluster
            spoke_client: API client for the managed cluster
            timeout: Per-request timeout in seconds
        """
        self.hub_client = hub_client
        self.spoke_client = spoke_client
        self.timeout = timeout

    async def check_all(self) -> dict[str, HealthCheckResult]:
        """
        Run all health checks.

        Returns:
            Dictionary of health check results
        """
        return {
            "hub_crd_installed": await self._check_hub_crd(),
            "spoke_api": await self._check_spoke_api(),
        }

    def get_overall_health(self, results: dict[str, HealthCheckResult]) -> str:
        """Collapse individual results into a single status."""
        if all(result.status == "healthy" for result in results.values()):
            return "healthy"
        return "unhealthy"

    async def _check_hub_crd(self) -> HealthCheckResult:
        """Check that the hub serves the ManagedServiceAccount CRD."""
        crd_name = f"{MSA_PLURAL}.{MSA_GROUP}"
        api = client.ApiextensionsV1Api(self.hub_client)
        return await self._run_check(
            "hub_crd_installed",
            lambda: api.read_custom_resource_definition(
                name=crd_name, _request_timeout=self.timeout
            ),
            f"CRD {crd_name} is installed on the hub",
        )

    async def _check_spoke_api(self) -> HealthCheckResult:
        """Check that the managed cluster API server answers."""
        api = client.VersionApi(self.spoke_client)
        return await self._run_check(
            "spoke_api",
            lambda: api.get_code(_request_timeout=self.timeout),
            "Managed cluster API is accessible",
        )

    async def _run_check(self, name: str, call, success_message: str):
        start_time = time.time()
        try:
            await asyncio.to_thread(call)
        except ApiException as e:
            return HealthCheckResult(
                name=name,
                status="unhealthy",
                message=f"Kubernetes API error: {e.reason}",
                details={"status_code": e.status},
                duration=time.time() - start_time,
                timestamp=time.time(),
            )
        except Exception as e:
            logger.debug(f"Health check {name} failed: {e}")
            return HealthCheckResult(
                name=name,
                status="unhealthy",
                message=f"Failed to connect: {e}",
                duration=time.time() - start_time,
                timestamp=time.time(),
            )

        duration = time.time() - start_time
        return HealthCheckResult(
            name=name,
            status="healthy",
            message=success_message,
            details={"response_time_ms": round(duration * 1000, 2)},
            duration=duration,
            timestamp=time.time(),
        )
