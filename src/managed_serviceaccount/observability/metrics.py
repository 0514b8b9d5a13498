"""
Prometheus metrics for the managed serviceaccount agent.

This module provides metrics collection for monitoring reconciliation
outcomes, token rotation and status write conflicts, plus the small aiohttp
server that exposes them.
"""

import logging
import time
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import TYPE_CHECKING

from aiohttp.web import (
    Application,
    AppRunner,
    Request,
    Response,
    TCPSite,
    json_response,
)
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)

if TYPE_CHECKING:
    from .health import HealthChecker

logger = logging.getLogger(__name__)

_metrics_registry = CollectorRegistry()

RECONCILIATION_TOTAL = Counter(
    "managed_serviceaccount_reconciliation_total",
    "Total number of reconciliation passes",
    ["namespace", "result"],
    registry=_metrics_registry,
)

RECONCILIATION_DURATION = Histogram(
    "managed_serviceaccount_reconciliation_duration_seconds",
    "Time spent on reconciliation passes",
    ["namespace", "operation"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
    registry=_metrics_registry,
)

RECONCILIATION_ERRORS = Counter(
    "managed_serviceaccount_reconciliation_errors_total",
    "Total number of failed reconciliation passes",
    ["namespace", "error_type", "retryable"],
    registry=_metrics_registry,
)

TOKEN_ROTATIONS_TOTAL = Counter(
    "managed_serviceaccount_token_rotations_total",
    "Total number of tokens issued and published",
    ["namespace"],
    registry=_metrics_registry,
)

TOKEN_ROTATIONS_SKIPPED_TOTAL = Counter(
    "managed_serviceaccount_token_rotations_skipped_total",
    "Total number of passes that kept the current token",
    ["namespace"],
    registry=_metrics_registry,
)

STATUS_CONFLICTS_TOTAL = Counter(
    "managed_serviceaccount_status_conflicts_total",
    "Total number of status writes rejected because the object changed",
    ["namespace"],
    registry=_metrics_registry,
)

TOKEN_EXPIRES_TIMESTAMP = Gauge(
    "managed_serviceaccount_token_expires_timestamp",
    "Unix timestamp when the published token expires",
    ["namespace", "name"],
    registry=_metrics_registry,
)


def get_metrics_registry() -> CollectorRegistry:
    """Get the registry holding all agent metrics."""
    return _metrics_registry


class MetricsCollector:
    """Collects and manages metrics for the agent."""

    def __init__(self):
        self.registry = get_metrics_registry()

    @asynccontextmanager
    async def track_reconciliation(self, namespace: str, operation: str = "reconcile"):
        """
        Context manager to track a reconciliation pass.

        Args:
            namespace: Namespace of the resource
            operation: Type of operation being performed
        """
        start_time = time.time()
        result = "unknown"

        try:
            yield
            result = "success"
        except Exception as e:
            result = "error"
            retryable = "true" if getattr(e, "retryable", False) else "false"

            RECONCILIATION_ERRORS.labels(
                namespace=namespace,
                error_type=type(e).__name__,
                retryable=retryable,
            ).inc()

            raise
        finally:
            duration = time.time() - start_time

            RECONCILIATION_TOTAL.labels(namespace=namespace, result=result).inc()
            RECONCILIATION_DURATION.labels(
                namespace=namespace, operation=operation
            ).observe(duration)

    def record_token_rotation(
        self, namespace: str, name: str, expiration_timestamp: datetime
    ) -> None:
        """Record a published token and its expiry."""
        TOKEN_ROTATIONS_TOTAL.labels(namespace=namespace).inc()
        TOKEN_EXPIRES_TIMESTAMP.labels(namespace=namespace, name=name).set(
            expiration_timestamp.timestamp()
        )

    def record_rotation_skipped(self, namespace: str) -> None:
        """Record a pass that found the current token still fresh."""
        TOKEN_ROTATIONS_SKIPPED_TOTAL.labels(namespace=namespace).inc()

    def record_status_conflict(self, namespace: str) -> None:
        """Record a status write rejected with a conflict."""
        STATUS_CONFLICTS_TOTAL.labels(namespace=namespace).inc()

    def forget_token(self, namespace: str, name: str) -> None:
        """Drop the expiry gauge of a deleted request."""
        with suppress(KeyError):
            TOKEN_EXPIRES_TIMESTAMP.remove(namespace, name)


class MetricsServer:
    """
    aiohttp application serving the agent's side endpoints.

    ``/metrics`` is the Prometheus exposition of the agent registry,
    ``/healthz`` answers as long as the event loop runs, and ``/ready``
    reflects hub and managed cluster reachability.
    """

    def __init__(
        self,
        port: int = 8081,
        host: str = "0.0.0.0",
        health_checker: "HealthChecker | None" = None,
    ):
        self.port = port
        self.host = host
        self.health_checker = health_checker
        self.runner: AppRunner | None = None

        self.app = Application()
        self.app.router.add_get("/metrics", self._serve_metrics)
        self.app.router.add_get("/healthz", self._serve_liveness)
        self.app.router.add_get("/ready", self._serve_readiness)

    async def _serve_metrics(self, request: Request) -> Response:
        return Response(
            body=generate_latest(get_metrics_registry()),
            headers={"Content-Type": CONTENT_TYPE_LATEST},
        )

    async def _serve_liveness(self, request: Request) -> Response:
        return Response(text="ok")

    async def _serve_readiness(self, request: Request) -> Response:
        if self.health_checker is None:
            return json_response({"status": "ready"})

        results = await self.health_checker.check_all()
        healthy = self.health_checker.get_overall_health(results) == "healthy"
        return json_response(
            {
                "status": "ready" if healthy else "not_ready",
                "checks": {name: result.status for name, result in results.items()},
            },
            status=200 if healthy else 503,
        )

    async def start(self) -> None:
        """Bind and start serving; raises OSError if the port is taken."""
        runner = AppRunner(self.app)
        await runner.setup()
        try:
            await TCPSite(runner, self.host, self.port).start()
        except OSError:
            await runner.cleanup()
            raise
        self.runner = runner
        logger.info(f"Serving metrics on {self.host}:{self.port}")

    async def stop(self) -> None:
        if self.runner is None:
            return
        await self.runner.cleanup()
        self.runner = None
        logger.info("Metrics server stopped")

    async def __aenter__(self) -> "MetricsServer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()


metrics_collector = MetricsCollector()
