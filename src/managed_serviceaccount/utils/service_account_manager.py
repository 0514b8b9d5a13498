"""
ServiceAccount and token operations on the managed cluster.

This module handles the two writes the agent performs on the managed
cluster: creating the ServiceAccount that backs a ManagedServiceAccount and
requesting bounded-lifetime tokens for it through the TokenRequest API.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import (
    DEFAULT_REMOTE_CALL_TIMEOUT,
    LABEL_KEY_IS_MANAGED_SERVICEACCOUNT,
    LABEL_VALUE_TRUE,
)
from ..errors import ReconciliationError
from .kubernetes import api_error

logger = logging.getLogger(__name__)

SPOKE_CLUSTER = "Managed cluster API"


@dataclass(frozen=True)
class IssuedToken:
    """A freshly issued token and the expiry reported by the API server."""

    token: str
    expiration_timestamp: datetime


class ServiceAccountManager:
    """Manages ServiceAccounts and their tokens in one managed cluster namespace."""

    def __init__(
        self,
        k8s_client: client.ApiClient,
        namespace: str,
        timeout: float = DEFAULT_REMOTE_CALL_TIMEOUT,
    ):
        """
        Initialize ServiceAccount manager.

        Args:
            k8s_client: API client for the managed cluster
            namespace: Namespace holding the managed ServiceAccounts
            timeout: Timeout in seconds applied to every API call
        """
        self.k8s_client = k8s_client
        self.namespace = namespace
        self.timeout = timeout
        self._v1: client.CoreV1Api | None = None

    @property
    def v1(self) -> client.CoreV1Api:
        """Get CoreV1Api client."""
        if self._v1 is None:
            self._v1 = client.CoreV1Api(self.k8s_client)
        return self._v1

    async def ensure_service_account(self, name: str) -> bool:
        """
        Create the ServiceAccount unless it already exists.

        Args:
            name: ServiceAccount name, equal to the ManagedServiceAccount name

        Returns:
            True if the ServiceAccount was created, False if it already existed

        Raises:
            KubernetesAPIError: If creation fails for reasons other than 409
        """
        body: dict[str, Any] = {
            "apiVersion": "v1",
            "kind": "ServiceAccount",
            "metadata": {
                "name": name,
                "namespace": self.namespace,
                "labels": {LABEL_KEY_IS_MANAGED_SERVICEACCOUNT: LABEL_VALUE_TRUE},
            },
        }

        try:
            await asyncio.to_thread(
                self.v1.create_namespaced_service_account,
                namespace=self.namespace,
                body=body,
                _request_timeout=self.timeout,
            )
        except ApiException as e:
            if e.status == 409:
                logger.debug(
                    f"ServiceAccount {self.namespace}/{name} already exists"
                )
                return False
            raise api_error(
                e,
                f"Failed ensuring service account {self.namespace}/{name}",
                cluster=SPOKE_CLUSTER,
            ) from e

        logger.info(f"Created ServiceAccount {self.namespace}/{name}")
        return True

    async def request_token(self, name: str, validity_seconds: int) -> IssuedToken:
        """
        Request a token for the ServiceAccount.

        The API server may shorten the requested lifetime, so the returned
        expiry is the one it reports rather than now + validity.

        Args:
            name: ServiceAccount name
            validity_seconds: Requested token lifetime in seconds

        Returns:
            The issued token and its expiration timestamp

        Raises:
            KubernetesAPIError: If the token request fails
            ReconciliationError: If the response carries no token or expiry
        """
        body = {
            "apiVersion": "authentication.k8s.io/v1",
            "kind": "TokenRequest",
            "spec": {"expirationSeconds": validity_seconds},
        }

        try:
            response = await asyncio.to_thread(
                self.v1.create_namespaced_service_account_token,
                name=name,
                namespace=self.namespace,
                body=body,
                _request_timeout=self.timeout,
            )
        except ApiException as e:
            raise api_error(
                e,
                f"Failed to request token for service account {self.namespace}/{name}",
                cluster=SPOKE_CLUSTER,
            ) from e

        status = getattr(response, "status", None)
        token = getattr(status, "token", None)
        expiration = getattr(status, "expiration_timestamp", None)
        if not token or expiration is None:
            raise ReconciliationError(
                f"TokenRequest for {self.namespace}/{name} returned no token or expiry"
            )

        logger.debug(
            f"Issued token for {self.namespace}/{name}",
            extra={"expiration_timestamp": expiration.isoformat()},
        )
        return IssuedToken(token=token, expiration_timestamp=expiration)
