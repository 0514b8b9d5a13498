"""
ManagedServiceAccount handlers - token issuance triggered by kopf.

The watch stream feeds the request cache; creation, spec changes, operator
restarts and a periodic resync timer each trigger one reconciliation pass by
key. Failed passes raise kopf.TemporaryError, which kopf reports as a warning
event on the hub object and retries after the error's delay.
"""

import logging
from typing import Any

import kopf

from managed_serviceaccount.constants import (
    MSA_GROUP,
    MSA_PLURAL,
    MSA_RESOURCE_TYPE,
    MSA_VERSION,
)
from managed_serviceaccount.observability.metrics import metrics_collector
from managed_serviceaccount.settings import settings as agent_settings
from managed_serviceaccount.utils.handler_logging import log_handler_entry

logger = logging.getLogger(__name__)


@kopf.on.event(MSA_GROUP, MSA_VERSION, MSA_PLURAL)
async def cache_managed_serviceaccount(
    event: dict[str, Any], memo: kopf.Memo, **kwargs: Any
) -> None:
    """
    Keep the request cache in sync with the watch stream.

    kopf invokes event handlers before change handlers for the same event,
    so a triggered pass always sees the object that triggered it.
    """
    memo.cache.apply_event(event)

    if event.get("type") == "DELETED":
        metadata = (event.get("object") or {}).get("metadata") or {}
        metrics_collector.forget_token(
            metadata.get("namespace", ""), metadata.get("name", "")
        )


@kopf.on.create(MSA_GROUP, MSA_VERSION, MSA_PLURAL, backoff=1.5)
@kopf.on.resume(MSA_GROUP, MSA_VERSION, MSA_PLURAL, backoff=1.5)
@kopf.on.update(MSA_GROUP, MSA_VERSION, MSA_PLURAL, field="spec", backoff=1.5)
async def reconcile_managed_serviceaccount(
    name: str,
    namespace: str,
    memo: kopf.Memo,
    reason: str | None = None,
    **kwargs: Any,
) -> None:
    """
    Reconcile a ManagedServiceAccount after it was created, changed or resumed.

    Args:
        name: Name of the ManagedServiceAccount
        namespace: Hub namespace of the managed cluster
        memo: Operator memo holding the reconciler
        reason: kopf cause (create, update, resume)
    """
    log_handler_entry(reason or "change", MSA_RESOURCE_TYPE, name, namespace)
    await memo.reconciler.reconcile(namespace, name, operation="reconcile")


@kopf.timer(
    MSA_GROUP,
    MSA_VERSION,
    MSA_PLURAL,
    interval=agent_settings.resync_interval_seconds,
    initial_delay=agent_settings.resync_interval_seconds,
)
async def resync_managed_serviceaccount(
    name: str,
    namespace: str,
    memo: kopf.Memo,
    stopped: kopf.DaemonStopped,
    **kwargs: Any,
) -> None:
    """
    Periodic resync pass.

    Rotation is driven by the clock, not by object changes, so every request
    is re-evaluated on this interval. ``stopped`` is set when the object is
    deleted or the agent shuts down; the pass then aborts before its next write.
    """
    log_handler_entry("resync", MSA_RESOURCE_TYPE, name, namespace)
    await memo.reconciler.reconcile(
        namespace, name, stopped=stopped, operation="resync"
    )
