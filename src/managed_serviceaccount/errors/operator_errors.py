"""
Errors raised by reconciliation passes.

Every failure of a pass is retryable: ServiceAccount creation is idempotent,
token issuance has no side effect until its result is published, and the
status write is guarded by resourceVersion. kopf therefore only ever sees
``kopf.TemporaryError`` for a request; ``kopf.PermanentError`` is reserved
for agent misconfiguration.
"""

import kopf

from ..constants import CONFLICT_RETRY_DELAY
from ..settings import settings


class OperatorError(Exception):
    """
    Base class for agent errors.

    Attributes:
        category: Coarse failure class used in logs (api, conflict, ...)
        retryable: Whether kopf should schedule another pass
        delay: Seconds until that pass
        user_action: Hint appended to the message shown in kopf events
    """

    def __init__(
        self,
        message: str,
        category: str,
        retryable: bool = True,
        delay: int | None = None,
        user_action: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.category = category
        self.retryable = retryable
        self.delay = delay if delay is not None else settings.retry_delay_seconds
        self.user_action = user_action
        self.cause = cause

    def as_kopf_error(self) -> kopf.TemporaryError | kopf.PermanentError:
        """The kopf signal for this failure."""
        if not self.retryable:
            return kopf.PermanentError(str(self))
        return kopf.TemporaryError(str(self), delay=self.delay)

    def __str__(self) -> str:
        message = super().__str__()
        if not self.user_action:
            return message
        return f"{message}\nAction required: {self.user_action}"


class TemporaryError(OperatorError):
    """A failure expected to clear up on its own."""

    def __init__(
        self,
        message: str,
        delay: int | None = None,
        user_action: str | None = None,
    ):
        super().__init__(
            message,
            category="temporary",
            delay=delay,
            user_action=user_action or "None, the pass is retried automatically",
        )


class KubernetesAPIError(OperatorError):
    """A hub or managed cluster API call failed.

    Permission and validation failures are retried like any other: RBAC for
    the agent is granted out of band and may simply not be in place yet.
    """

    def __init__(
        self,
        message: str,
        reason: str | None = None,
        cluster: str = "Kubernetes API",
        delay: int | None = None,
    ):
        if reason:
            message = f"{message} (reason: {reason})"
        super().__init__(
            f"{cluster} error: {message}",
            category="api",
            delay=delay,
            user_action=f"Check {cluster} connectivity and the agent's RBAC",
        )
        self.cluster = cluster
        self.reason = reason


class StatusConflictError(TemporaryError):
    """The hub object changed between load and status write.

    The pass is abandoned and rescheduled quickly so the next one starts from
    the current object rather than retrying the write with stale data.
    """

    def __init__(self, namespace: str, name: str):
        super().__init__(
            f"ManagedServiceAccount {namespace}/{name} was modified "
            f"concurrently, status update rejected",
            delay=CONFLICT_RETRY_DELAY,
        )
        self.category = "conflict"


class ReconciliationError(OperatorError):
    """A pass could not complete for a reason other than an API failure."""

    def __init__(
        self,
        message: str,
        retryable: bool = True,
        delay: int | None = None,
        user_action: str | None = None,
    ):
        super().__init__(
            message,
            category="reconciliation",
            retryable=retryable,
            delay=delay,
            user_action=user_action or "Inspect the agent logs for this request",
        )


class ReconciliationCancelledError(TemporaryError):
    """The pass was cancelled before its next remote write."""

    def __init__(self, namespace: str, name: str, step: str):
        super().__init__(
            f"Reconciliation of {namespace}/{name} cancelled before {step}"
        )
        self.category = "cancelled"
        self.step = step


class ConfigurationError(OperatorError):
    """Agent configuration is missing or unusable."""

    def __init__(
        self, message: str, retryable: bool = False, user_action: str | None = None
    ):
        super().__init__(
            message,
            category="configuration",
            retryable=retryable,
            user_action=user_action or "Check the agent's environment and mounts",
        )


class RequestNotFoundError(LookupError):
    """The requested ManagedServiceAccount is not present in the cache.

    Not an OperatorError: a vanished request ends the pass successfully.
    """

    def __init__(self, namespace: str, name: str):
        super().__init__(f"ManagedServiceAccount {namespace}/{name} not found")
        self.namespace = namespace
        self.name = name
