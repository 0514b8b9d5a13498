"""
Error handling module for the managed serviceaccount agent.

This module provides the error hierarchy that integrates with kopf
and provides clear categorization for different types of failures.
"""

from .operator_errors import (
    ConfigurationError,
    KubernetesAPIError,
    OperatorError,
    ReconciliationCancelledError,
    ReconciliationError,
    RequestNotFoundError,
    StatusConflictError,
    TemporaryError,
)

__all__ = [
    "OperatorError",
    "TemporaryError",
    "KubernetesAPIError",
    "StatusConflictError",
    "ReconciliationError",
    "ReconciliationCancelledError",
    "ConfigurationError",
    "RequestNotFoundError",
]
