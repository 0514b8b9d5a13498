#!/usr/bin/env python3
"""
Managed ServiceAccount agent - Main entry point for the Kopf-based agent.

The agent runs next to (or inside) a managed cluster and watches the hub
namespace named after that cluster for ManagedServiceAccount resources.

Usage:
    python -m managed_serviceaccount.operator
    # Or with kopf directly:
    kopf run -m managed_serviceaccount.operator --namespace <cluster-name>

Environment Variables:
    CLUSTER_NAME: Managed cluster name, also the hub namespace to watch
    SPOKE_NAMESPACE: Namespace for ServiceAccounts on the managed cluster
    HUB_KUBECONFIG: Kubeconfig of the hub cluster
    SPOKE_KUBECONFIG: Kubeconfig of the managed cluster (empty = in-cluster)
    LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
"""

import logging
import random
import sys
from datetime import timedelta

import kopf

# Importing handler modules registers their decorators with kopf
from managed_serviceaccount.constants import KOPF_ANNOTATION_PREFIX, PEERING_NAME
from managed_serviceaccount.handlers import managed_serviceaccount  # noqa: F401
from managed_serviceaccount.observability.health import HealthChecker
from managed_serviceaccount.observability.logging import setup_structured_logging
from managed_serviceaccount.observability.metrics import MetricsServer
from managed_serviceaccount.services import ManagedServiceAccountCache, TokenReconciler
from managed_serviceaccount.settings import settings as agent_settings
from managed_serviceaccount.utils.kubernetes import (
    connection_info_from,
    get_kubernetes_client,
    load_client_configuration,
    load_spoke_client_config,
)
from managed_serviceaccount.utils.service_account_manager import ServiceAccountManager
from managed_serviceaccount.utils.status_publisher import StatusPublisher


def configure_logging() -> None:
    """Configure structured logging for the agent based on agent_settings."""
    setup_structured_logging(
        log_level=agent_settings.log_level.upper(),
        enable_json_formatting=agent_settings.json_logs,
        correlation_id_enabled=agent_settings.correlation_ids,
        log_health_probes=agent_settings.log_health_probes,
    )


@kopf.on.login()
def login_to_hub(**_) -> kopf.ConnectionInfo:
    """Point kopf's watch streams at the hub cluster."""
    configuration = load_client_configuration(agent_settings.hub_kubeconfig)
    logging.info(f"Authenticating to hub API at {configuration.host}")
    return connection_info_from(
        configuration, default_namespace=agent_settings.cluster_name
    )


@kopf.on.startup()
async def startup_handler(
    settings: kopf.OperatorSettings, memo: kopf.Memo, **_
) -> None:
    """
    Agent startup configuration.

    Configures kopf and injects the reconciler and its collaborators into
    the memo shared with every handler:
    - Peering for leader election
    - Progress bookkeeping in annotations, never in status
    - Hub and managed cluster API clients
    - Metrics and health endpoints
    """
    logging.info("Starting managed serviceaccount agent...")

    settings.watching.reconnect_backoff = 1.0

    settings.peering.name = PEERING_NAME
    settings.peering.priority = random.randint(0, 32767)
    logging.info(
        f"Peering priority set to {settings.peering.priority} for leader election"
    )

    # Status is replaced wholesale on every rotation, so kopf must not keep
    # its own state there
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=KOPF_ANNOTATION_PREFIX
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=KOPF_ANNOTATION_PREFIX
    )

    # Failed passes surface as warning events on the hub object
    settings.posting.level = logging.WARNING

    if not agent_settings.cluster_name:
        logging.error("CLUSTER_NAME environment variable is not set")
        raise ValueError("CLUSTER_NAME is required but not configured")

    hub_configuration = load_client_configuration(agent_settings.hub_kubeconfig)
    spoke_configuration = load_client_configuration(agent_settings.spoke_kubeconfig)
    hub_client = get_kubernetes_client(hub_configuration)
    spoke_client = get_kubernetes_client(spoke_configuration)
    spoke_config = load_spoke_client_config(
        spoke_configuration, agent_settings.spoke_kubeconfig
    )

    memo.hub_client = hub_client
    memo.spoke_client = spoke_client
    memo.cache = ManagedServiceAccountCache()
    memo.reconciler = TokenReconciler(
        cache=memo.cache,
        service_accounts=ServiceAccountManager(
            spoke_client,
            namespace=agent_settings.spoke_namespace,
            timeout=agent_settings.remote_call_timeout_seconds,
        ),
        publisher=StatusPublisher(
            hub_client,
            spoke_config,
            timeout=agent_settings.remote_call_timeout_seconds,
        ),
        refresh_threshold=timedelta(seconds=agent_settings.refresh_threshold_seconds),
    )
    memo.health_checker = HealthChecker(hub_client, spoke_client)

    logging.info(
        f"Watching hub namespace {agent_settings.cluster_name}, "
        f"managing ServiceAccounts in {agent_settings.spoke_namespace}"
    )

    memo.metrics_server = None
    try:
        metrics_server = MetricsServer(
            port=agent_settings.metrics_port,
            host=agent_settings.metrics_host,
            health_checker=memo.health_checker,
        )
        await metrics_server.start()
        memo.metrics_server = metrics_server
    except OSError as e:
        # Don't fail startup if the metrics port is unavailable
        logging.warning(f"Continuing without metrics server: {e}")


@kopf.on.cleanup()
async def cleanup_handler(memo: kopf.Memo, **_) -> None:
    """Stop the metrics server and release API clients on shutdown."""
    logging.info("Shutting down managed serviceaccount agent...")

    metrics_server = getattr(memo, "metrics_server", None)
    if metrics_server:
        await metrics_server.stop()

    for name in ("hub_client", "spoke_client"):
        api_client = getattr(memo, name, None)
        if api_client is not None:
            api_client.close()


@kopf.on.probe(id="healthz")
async def health_check(memo: kopf.Memo, **_) -> dict[str, str]:
    """
    Health check probe for Kubernetes liveness/readiness checks.

    Returns:
        Dictionary indicating agent health status
    """
    health_checker: HealthChecker | None = getattr(memo, "health_checker", None)
    if health_checker is None:
        return {"status": "starting", "agent": PEERING_NAME}

    results = await health_checker.check_all()
    return {
        "status": health_checker.get_overall_health(results),
        "agent": PEERING_NAME,
    }


def main() -> None:
    """
    Main entry point for the agent.

    This function:
    1. Configures logging
    2. Validates the watched namespace
    3. Runs kopf scoped to the managed cluster namespace on the hub
    """
    configure_logging()

    watched_namespaces = agent_settings.watched_namespaces
    if not watched_namespaces:
        logging.error("CLUSTER_NAME must be set to the managed cluster name")
        sys.exit(1)

    try:
        kopf.run(
            namespaces=watched_namespaces,
            liveness_endpoint=f"http://0.0.0.0:{agent_settings.liveness_port}/healthz",
        )
    except KeyboardInterrupt:
        logging.info("Received shutdown signal")
        sys.exit(0)
    except Exception as e:
        logging.error(f"Agent failed with error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
