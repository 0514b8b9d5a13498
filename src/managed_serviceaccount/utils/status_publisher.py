"""
Status publishing for ManagedServiceAccount resources on the hub.

The published status carries the issued token, its expiry and the CA bundle
a token holder needs to verify the managed cluster API server. It is written
as one whole replacement against the object version the pass loaded, so a
concurrent change surfaces as a conflict instead of being overwritten.
"""

import asyncio
import logging
from pathlib import Path

from kubernetes import client
from kubernetes.client.rest import ApiException

from ..constants import DEFAULT_REMOTE_CALL_TIMEOUT, MSA_GROUP, MSA_PLURAL, MSA_VERSION
from ..errors import ConfigurationError, StatusConflictError
from ..models import ManagedServiceAccount, ManagedServiceAccountStatus
from .kubernetes import SpokeClientConfig, api_error
from .service_account_manager import IssuedToken

logger = logging.getLogger(__name__)

HUB_CLUSTER = "Hub API"


class StatusPublisher:
    """Writes issued tokens onto ManagedServiceAccount status on the hub."""

    def __init__(
        self,
        hub_client: client.ApiClient,
        spoke_config: SpokeClientConfig,
        timeout: float = DEFAULT_REMOTE_CALL_TIMEOUT,
    ):
        """
        Initialize status publisher.

        Args:
            hub_client: API client for the hub cluster
            spoke_config: CA material of the managed cluster API server
            timeout: Timeout in seconds applied to every API call
        """
        self.hub_client = hub_client
        self.spoke_config = spoke_config
        self.timeout = timeout
        self._custom_api: client.CustomObjectsApi | None = None

    @property
    def custom_api(self) -> client.CustomObjectsApi:
        """Get CustomObjectsApi client."""
        if self._custom_api is None:
            self._custom_api = client.CustomObjectsApi(self.hub_client)
        return self._custom_api

    async def resolve_ca_data(self) -> bytes:
        """
        Return the managed cluster CA bundle.

        Inline CA data wins; otherwise the configured CA file is read.

        Raises:
            ConfigurationError: If no CA is configured or the file cannot be read
        """
        if self.spoke_config.ca_data:
            return self.spoke_config.ca_data

        ca_file = self.spoke_config.ca_file
        if not ca_file:
            raise ConfigurationError(
                "No CA data or CA file configured for the managed cluster",
                retryable=True,
            )

        try:
            ca_data = await asyncio.to_thread(Path(ca_file).read_bytes)
        except OSError as e:
            raise ConfigurationError(
                f"Failed to read CA data from file {ca_file}: {e}",
                retryable=True,
                user_action="Check that the managed cluster CA bundle is mounted",
            ) from e

        if not ca_data:
            raise ConfigurationError(f"CA file {ca_file} is empty", retryable=True)
        return ca_data

    async def publish(
        self,
        managed: ManagedServiceAccount,
        issued: IssuedToken,
        ca_data: bytes,
    ) -> ManagedServiceAccountStatus:
        """
        Replace the status of the loaded object with the new token.

        Args:
            managed: The object as loaded at the start of the pass
            issued: Token and expiry returned by the managed cluster
            ca_data: Managed cluster CA bundle

        Returns:
            The status that was written

        Raises:
            StatusConflictError: If the object changed since it was loaded
            KubernetesAPIError: If the write fails for any other reason
        """
        status = ManagedServiceAccountStatus(
            token=issued.token,
            expiration_timestamp=issued.expiration_timestamp,
            ca_certificate_data=ca_data,
        )
        body = managed.deep_copy_with_status(status)

        try:
            await asyncio.to_thread(
                self.custom_api.replace_namespaced_custom_object_status,
                group=MSA_GROUP,
                version=MSA_VERSION,
                namespace=managed.namespace,
                plural=MSA_PLURAL,
                name=managed.name,
                body=body,
                _request_timeout=self.timeout,
            )
        except ApiException as e:
            if e.status == 409:
                raise StatusConflictError(managed.namespace, managed.name) from e
            raise api_error(
                e,
                f"Failed to update status of {managed.namespace}/{managed.name}",
                cluster=HUB_CLUSTER,
            ) from e

        return status
