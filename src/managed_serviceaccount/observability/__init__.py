"""
Observability utilities for the managed serviceaccount agent.

This module provides metrics, health checks, and structured logging
capabilities for production monitoring and troubleshooting.
"""

from .health import HealthChecker
from .logging import OperatorLogger, setup_structured_logging
from .metrics import MetricsServer, get_metrics_registry, metrics_collector

__all__ = [
    "MetricsServer",
    "get_metrics_registry",
    "metrics_collector",
    "HealthChecker",
    "OperatorLogger",
    "setup_structured_logging",
]
