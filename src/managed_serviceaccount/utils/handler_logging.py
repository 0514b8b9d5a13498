"""Entry logging shared by the kopf handlers."""

import logging

from managed_serviceaccount.settings import settings

logger = logging.getLogger(__name__)


def log_handler_entry(
    handler_type: str, resource_type: str, name: str, namespace: str, **fields
) -> None:
    """Record that a handler fired for ``namespace/name``.

    Logged at ``HANDLER_ENTRY_LOG_LEVEL`` (DEBUG by default), since resync
    ticks fire for every request on every interval.

    Args:
        handler_type: kopf cause or ``resync``
        resource_type: Resource kind in lower case
        name: Resource name
        namespace: Hub namespace
        **fields: Further structured fields for the record
    """
    logger.log(
        getattr(logging, settings.handler_entry_log_level),
        f"{handler_type} handler for {resource_type} {namespace}/{name}",
        extra={
            "handler_type": handler_type,
            "resource_type": resource_type,
            "resource_name": name,
            "namespace": namespace,
            **fields,
        },
    )
