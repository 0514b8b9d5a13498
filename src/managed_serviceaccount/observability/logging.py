"""
Structured logging for the managed serviceaccount agent.

Every reconciliation pass runs under its own correlation id so the lines of
one pass can be picked out of the interleaved output of concurrent passes.
Records are rendered as JSON with the request key and pass outcome as
top-level fields. Token values never reach a handler.
"""

import json
import logging
import uuid
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

pass_correlation_id: ContextVar[str] = ContextVar("pass_correlation_id", default="")

# Requests to these paths come from probes and scrapers
PROBE_PATHS = ("/healthz", "/ready", "/metrics")

# extra= keys promoted into the JSON document
STRUCTURED_FIELDS = (
    "resource_type",
    "resource_name",
    "namespace",
    "spoke_namespace",
    "operation",
    "outcome",
    "duration",
    "error_type",
    "expiration_timestamp",
    "handler_type",
)

# extra= keys that must never be emitted
REDACTED_FIELDS = frozenset({"token", "ca_certificate_data"})

NOISY_LOGGERS = (
    "kopf",
    "kubernetes",
    "urllib3",
    "aiohttp.access",
    "aiohttp.server",
    "aiohttp.web",
)


def new_correlation_id() -> str:
    """Short random id for one reconciliation pass."""
    return uuid.uuid4().hex[:8]


def set_correlation_id(value: str) -> str:
    pass_correlation_id.set(value)
    return value


def get_correlation_id() -> str:
    return pass_correlation_id.get()


class ProbeAccessFilter(logging.Filter):
    """Drops access log lines for probe and scrape endpoints."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(path in message for path in PROBE_PATHS)


class CorrelationIDFilter(logging.Filter):
    """Stamps the current pass correlation id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = pass_correlation_id.get() or "-"
        return True


class TokenRedactionFilter(logging.Filter):
    """Removes secret-bearing extra= attributes from records."""

    def filter(self, record: logging.LogRecord) -> bool:
        for field in REDACTED_FIELDS:
            if field in record.__dict__:
                setattr(record, field, "<redacted>")
        return True


class StructuredFormatter(logging.Formatter):
    """Renders records as one JSON document per line."""

    def format(self, record: logging.LogRecord) -> str:
        document: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }
        document.update(
            {
                field: getattr(record, field)
                for field in STRUCTURED_FIELDS
                if hasattr(record, field)
            }
        )
        if record.exc_info:
            document["exception"] = self.formatException(record.exc_info)
        return json.dumps(document, default=str)


def _plain_formatter(with_correlation_id: bool) -> logging.Formatter:
    prefix = "%(asctime)s %(levelname)s"
    if with_correlation_id:
        prefix += " [%(correlation_id)s]"
    return logging.Formatter(f"{prefix} %(name)s: %(message)s")


def setup_structured_logging(
    log_level: str = "INFO",
    enable_json_formatting: bool = True,
    correlation_id_enabled: bool = True,
    log_health_probes: bool = False,
) -> None:
    """
    Replace the root handlers with a single configured stream handler.

    Args:
        log_level: Root level name
        enable_json_formatting: JSON lines instead of plain text
        correlation_id_enabled: Stamp records with the pass correlation id
        log_health_probes: Keep access lines for probe and metrics endpoints
    """
    handler = logging.StreamHandler()
    handler.addFilter(TokenRedactionFilter())
    if correlation_id_enabled or enable_json_formatting:
        handler.addFilter(CorrelationIDFilter())
    if not log_health_probes:
        handler.addFilter(ProbeAccessFilter())

    if enable_json_formatting:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(_plain_formatter(correlation_id_enabled))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class OperatorLogger:
    """
    Logger bound to one resource type.

    The ``pass_*`` methods bracket a reconciliation pass; the level methods
    take structured fields as keyword arguments.
    """

    def __init__(self, name: str, resource_type: str = "resource"):
        self.logger = logging.getLogger(name)
        self.resource_type = resource_type

    def _fields(self, namespace: str, name: str, **fields: Any) -> dict[str, Any]:
        return {
            "resource_type": self.resource_type,
            "resource_name": name,
            "namespace": namespace,
            **fields,
        }

    def pass_started(self, namespace: str, name: str, operation: str) -> str:
        """Open a new correlation scope for a pass and log its start."""
        corr_id = set_correlation_id(new_correlation_id())
        self.logger.info(
            f"Reconciling {self.resource_type} {namespace}/{name} ({operation})",
            extra=self._fields(namespace, name, operation=operation),
        )
        return corr_id

    def pass_finished(
        self, namespace: str, name: str, outcome: str, duration: float
    ) -> None:
        self.logger.info(
            f"Reconciled {self.resource_type} {namespace}/{name}: {outcome}",
            extra=self._fields(namespace, name, outcome=outcome, duration=duration),
        )

    def pass_failed(
        self, namespace: str, name: str, error: Exception, duration: float
    ) -> None:
        """Failed passes are retried, so they are warnings rather than errors."""
        self.logger.warning(
            f"Reconciling {self.resource_type} {namespace}/{name} failed: {error}",
            extra=self._fields(
                namespace, name, error_type=type(error).__name__, duration=duration
            ),
            exc_info=error,
        )

    def debug(self, message: str, **fields: Any) -> None:
        self.logger.debug(message, extra=fields)

    def info(self, message: str, **fields: Any) -> None:
        self.logger.info(message, extra=fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.logger.warning(message, extra=fields)
