"""Reconciliation engine for PagerDutyIntegration resources."""

from .engine import ClusterReconcileError, Reconciler, ReconcileResult
from .selector import is_in_scope, matches_selector, validate_selector

__all__ = [
    "ClusterReconcileError",
    "ReconcileResult",
    "Reconciler",
    "is_in_scope",
    "matches_selector",
    "validate_selector",
]
