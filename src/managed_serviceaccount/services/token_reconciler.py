"""
Token reconciler for ManagedServiceAccount resources.

One pass loads the request from the cache, ensures its ServiceAccount on the
managed cluster, decides whether the published token needs replacing and, if
so, issues a new one and publishes it to the hub:

    load -> (not found) -> done
    load -> ensure service account -> (fresh token) -> done
    ensure service account -> issue token -> publish status -> done

No state survives a pass. Every failure aborts the pass before the status
write and is retried by kopf with a fresh pass.
"""

from datetime import timedelta
from typing import Any

from ..constants import (
    MSA_RESOURCE_TYPE,
    SKIPPED_TOKEN_REFRESH,
    SUCCESS_TOKEN_REFRESHED,
)
from ..errors import (
    ReconciliationCancelledError,
    RequestNotFoundError,
    StatusConflictError,
)
from ..models.types import format_timestamp
from ..observability.metrics import metrics_collector
from ..utils.keyed_lock import KeyedLock
from ..utils.service_account_manager import ServiceAccountManager
from ..utils.status_publisher import StatusPublisher
from .base_reconciler import BaseReconciler, ReconcileOutcome
from .request_cache import ManagedServiceAccountCache
from .rotation_policy import DEFAULT_REFRESH_THRESHOLD, should_issue_token


class TokenReconciler(BaseReconciler):
    """Issues and rotates tokens for ManagedServiceAccount resources."""

    resource_type = MSA_RESOURCE_TYPE

    def __init__(
        self,
        cache: ManagedServiceAccountCache,
        service_accounts: ServiceAccountManager,
        publisher: StatusPublisher,
        refresh_threshold: timedelta = DEFAULT_REFRESH_THRESHOLD,
        locks: KeyedLock | None = None,
    ):
        """
        Initialize token reconciler.

        Args:
            cache: Watch-backed cache the requests are loaded from
            service_accounts: ServiceAccount and token operations on the spoke
            publisher: Status writer for the hub
            refresh_threshold: Remaining lifetime below which tokens are rotated
            locks: Per-request locks serialising passes for the same key
        """
        super().__init__()
        self.cache = cache
        self.service_accounts = service_accounts
        self.publisher = publisher
        self.refresh_threshold = refresh_threshold
        self.locks = locks or KeyedLock()

    async def do_reconcile(
        self, namespace: str, name: str, stopped: Any = None
    ) -> ReconcileOutcome:
        key = (namespace, name)
        async with self.locks.hold(key):
            return await self._reconcile_locked(namespace, name, stopped)

    async def _reconcile_locked(
        self, namespace: str, name: str, stopped: Any
    ) -> ReconcileOutcome:
        try:
            managed = self.cache.get((namespace, name))
        except RequestNotFoundError:
            self.logger.info(
                f"No such resource {namespace}/{name}",
                resource_name=name,
                namespace=namespace,
            )
            metrics_collector.forget_token(namespace, name)
            return ReconcileOutcome.NOT_FOUND

        self._check_cancelled(stopped, namespace, name, "ensuring service account")
        await self.service_accounts.ensure_service_account(managed.name)

        if not should_issue_token(
            managed.status, refresh_threshold=self.refresh_threshold
        ):
            self.logger.info(
                SKIPPED_TOKEN_REFRESH,
                resource_name=name,
                namespace=namespace,
                outcome=ReconcileOutcome.SKIPPED.value,
            )
            metrics_collector.record_rotation_skipped(namespace)
            return ReconcileOutcome.SKIPPED

        self._check_cancelled(stopped, namespace, name, "requesting token")
        issued = await self.service_accounts.request_token(
            managed.name, managed.spec.rotation.validity_seconds
        )

        ca_data = await self.publisher.resolve_ca_data()

        self._check_cancelled(stopped, namespace, name, "updating status")
        try:
            await self.publisher.publish(managed, issued, ca_data)
        except StatusConflictError:
            metrics_collector.record_status_conflict(namespace)
            raise

        metrics_collector.record_token_rotation(
            namespace, name, issued.expiration_timestamp
        )
        self.logger.info(
            SUCCESS_TOKEN_REFRESHED,
            resource_name=name,
            namespace=namespace,
            spoke_namespace=self.service_accounts.namespace,
            expiration_timestamp=format_timestamp(issued.expiration_timestamp),
            outcome=ReconcileOutcome.ROTATED.value,
        )
        return ReconcileOutcome.ROTATED

    @staticmethod
    def _check_cancelled(stopped: Any, namespace: str, name: str, step: str) -> None:
        if stopped:
            raise ReconciliationCancelledError(namespace, name, step)
