"""
Service layer for the managed serviceaccount agent.

This module provides the reconciler that handles the business logic of
token issuance, separated from the kopf handler layer.
"""

from .base_reconciler import BaseReconciler, ReconcileOutcome
from .request_cache import ManagedServiceAccountCache
from .rotation_policy import should_issue_token
from .token_reconciler import TokenReconciler

__all__ = [
    "BaseReconciler",
    "ReconcileOutcome",
    "ManagedServiceAccountCache",
    "TokenReconciler",
    "should_issue_token",
]
