"""
Kubernetes utilities for the managed serviceaccount agent.

This module provides helper functions for building API clients for the two
clusters the agent talks to:

- Hub: where ManagedServiceAccount resources and their status live
- Managed cluster (spoke): where ServiceAccounts and tokens are created

It also extracts the CA material of the managed cluster API server, which
is published next to every issued token.
"""

import base64
import logging
from dataclasses import dataclass

import kopf
import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config import kube_config

from managed_serviceaccount.constants import IN_CLUSTER_CA_FILE
from managed_serviceaccount.errors import ConfigurationError, KubernetesAPIError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SpokeClientConfig:
    """CA material of the managed cluster API server.

    The inline bundle taken from the kubeconfig, if any, and the CA file the
    client configuration verifies against (the mounted service account
    bundle when running in-cluster).
    """

    ca_data: bytes | None = None
    ca_file: str | None = None


def load_client_configuration(kubeconfig_path: str = "") -> client.Configuration:
    """
    Load a client configuration without touching the global default.

    Args:
        kubeconfig_path: Explicit kubeconfig file; empty means in-cluster
            configuration with a fallback to the default kubeconfig

    Returns:
        Populated Kubernetes client configuration

    Raises:
        ConfigurationError: If no configuration can be loaded
    """
    configuration = client.Configuration()

    try:
        if kubeconfig_path:
            config.load_kube_config(
                config_file=kubeconfig_path, client_configuration=configuration
            )
            logger.debug(f"Loaded kubeconfig from {kubeconfig_path}")
            return configuration

        try:
            config.load_incluster_config(client_configuration=configuration)
            logger.debug("Loaded in-cluster Kubernetes configuration")
        except config.ConfigException:
            config.load_kube_config(client_configuration=configuration)
            logger.debug("Loaded kubeconfig from local environment")
    except config.ConfigException as e:
        raise ConfigurationError(
            f"Failed to load Kubernetes configuration: {e}",
            user_action="Set HUB_KUBECONFIG / SPOKE_KUBECONFIG or run in-cluster",
        ) from e

    return configuration


def get_kubernetes_client(configuration: client.Configuration) -> client.ApiClient:
    """Build an API client bound to the given configuration."""
    return client.ApiClient(configuration)


def load_spoke_client_config(
    configuration: client.Configuration, kubeconfig_path: str = ""
) -> SpokeClientConfig:
    """
    Extract CA material for the managed cluster API server.

    Inline ``certificate-authority-data`` of the kubeconfig's active cluster
    is preferred. The CA file is the one the loaded client configuration
    verifies against, which the kubernetes loader has already resolved
    relative to the kubeconfig's directory.

    Args:
        configuration: Loaded managed cluster client configuration
        kubeconfig_path: The kubeconfig it was loaded from, if any

    Returns:
        The CA material known for the managed cluster
    """
    ca_file = configuration.ssl_ca_cert or IN_CLUSTER_CA_FILE
    if kubeconfig_path:
        ca_data = _active_cluster_ca_data(kubeconfig_path)
        if ca_data:
            return SpokeClientConfig(ca_data=ca_data, ca_file=ca_file)

    return SpokeClientConfig(ca_file=ca_file)


def _active_cluster_ca_data(kubeconfig_path: str) -> bytes | None:
    """Inline CA bundle of the cluster selected by the current context."""
    try:
        _, active_context = config.list_kube_config_contexts(
            config_file=kubeconfig_path
        )
        clusters = kube_config.KubeConfigMerger(kubeconfig_path).config["clusters"]
        cluster = clusters.get_with_name(active_context["context"]["cluster"])
        inline = cluster["cluster"].safe_get("certificate-authority-data")
    except (config.ConfigException, OSError, yaml.YAMLError) as e:
        raise ConfigurationError(
            f"Failed to read kubeconfig {kubeconfig_path}: {e}"
        ) from e

    return base64.b64decode(inline) if inline else None


def connection_info_from(
    configuration: client.Configuration, default_namespace: str | None = None
) -> kopf.ConnectionInfo:
    """
    Translate a client configuration into kopf credentials.

    kopf only watches one cluster; the agent points it at the hub.
    """
    token = None
    authorization = configuration.api_key.get("authorization")
    if authorization:
        scheme, _, value = authorization.partition(" ")
        token = value if scheme.lower() == "bearer" else authorization

    return kopf.ConnectionInfo(
        server=configuration.host,
        ca_path=configuration.ssl_ca_cert,
        insecure=not configuration.verify_ssl,
        username=configuration.username or None,
        password=configuration.password or None,
        token=token,
        certificate_path=configuration.cert_file,
        private_key_path=configuration.key_file,
        default_namespace=default_namespace,
    )


def api_error(
    e: ApiException, message: str, cluster: str = "Kubernetes API"
) -> KubernetesAPIError:
    """Wrap an ApiException with the step that failed."""
    return KubernetesAPIError(
        f"{message}: HTTP {e.status}", reason=e.reason, cluster=cluster
    )
