"""
Base reconciler class providing common patterns for resource reconciliation.

This module defines the BaseReconciler class that implements the standard
wrapper around every pass: correlation-id logging, metrics tracking and the
translation of failures into kopf retry signals.
"""

import time
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

from kubernetes.client.rest import ApiException

from ..errors import KubernetesAPIError, OperatorError, TemporaryError
from ..observability.logging import OperatorLogger
from ..observability.metrics import metrics_collector


class ReconcileOutcome(StrEnum):
    """How a successful pass ended."""

    NOT_FOUND = "not_found"
    SKIPPED = "skipped"
    ROTATED = "rotated"


class BaseReconciler(ABC):
    """
    Base class for resource reconcilers.

    Provides common patterns for:
    - Correlation-id tracking and structured logging
    - Reconciliation metrics
    - Conversion of errors into kopf retry signals
    """

    resource_type: str = "resource"

    def __init__(self):
        self.logger = OperatorLogger(self.__class__.__name__, self.resource_type)

    async def reconcile(
        self,
        namespace: str,
        name: str,
        stopped: Any = None,
        operation: str = "reconcile",
    ) -> ReconcileOutcome:
        """
        Main reconciliation entry point with metrics tracking.

        Args:
            namespace: Resource namespace
            name: Resource name
            stopped: Cancellation flag, truthy once the pass must stop
            operation: What triggered the pass (reconcile, resync, ...)

        Returns:
            How the pass ended

        Raises:
            kopf.TemporaryError: On any failure; kopf schedules the retry
        """
        start_time = time.time()

        self.logger.pass_started(namespace, name, operation)

        try:
            async with metrics_collector.track_reconciliation(
                namespace=namespace, operation=operation
            ):
                outcome = await self.do_reconcile(namespace, name, stopped=stopped)

        except OperatorError as e:
            self._log_failure(namespace, name, e, start_time)
            raise e.as_kopf_error() from e

        except ApiException as e:
            error = KubernetesAPIError(message=str(e), reason=getattr(e, "reason", None))
            self._log_failure(namespace, name, error, start_time)
            raise error.as_kopf_error() from e

        except Exception as e:
            # Wrap unexpected errors as temporary to allow retry
            error = TemporaryError(f"Unexpected error during reconciliation: {e}")
            self._log_failure(namespace, name, error, start_time)
            raise error.as_kopf_error() from e

        self.logger.pass_finished(
            namespace, name, outcome.value, duration=time.time() - start_time
        )
        return outcome

    def _log_failure(
        self, namespace: str, name: str, error: Exception, start_time: float
    ) -> None:
        self.logger.pass_failed(
            namespace, name, error, duration=time.time() - start_time
        )

    @abstractmethod
    async def do_reconcile(
        self, namespace: str, name: str, stopped: Any = None
    ) -> ReconcileOutcome:
        """
        Perform the actual reconciliation logic.

        Args:
            namespace: Resource namespace
            name: Resource name
            stopped: Cancellation flag

        Returns:
            How the pass ended
        """
        raise NotImplementedError("Subclasses must implement do_reconcile method")
