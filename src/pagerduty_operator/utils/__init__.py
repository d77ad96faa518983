"""Utility functions for the PagerDuty Operator."""

from .conditions import (
    set_configuration_invalid_condition,
    set_ready_condition,
    set_reconcile_failed_condition,
    update_condition,
)
from .context import get_context_dict, get_correlation_id, with_correlation_id
from .events import emit_event
from .finalizers import add_finalizer, finalizer_for, has_finalizer, remove_finalizers
from .rate_limit import rate_limit_k8s, rate_limit_pagerduty
from .secrets import encode_secret_data, find_secret_value, get_secret_value

__all__ = [
    "update_condition",
    "set_ready_condition",
    "set_configuration_invalid_condition",
    "set_reconcile_failed_condition",
    "emit_event",
    "add_finalizer",
    "finalizer_for",
    "has_finalizer",
    "remove_finalizers",
    "encode_secret_data",
    "find_secret_value",
    "get_secret_value",
    "rate_limit_k8s",
    "rate_limit_pagerduty",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
]
