"""Decides which ClusterDeployments an integration applies to."""

from __future__ import annotations

from typing import Any

from ..constants import LABEL_CLUSTER_NOALERTS
from ..models import BindingConfigError, ClusterDeployment, IntegrationBinding

_OPERATORS = {"In", "NotIn", "Exists", "DoesNotExist"}


def validate_selector(selector: dict[str, Any]) -> None:
    """Check a label selector for structural errors.

    Raises:
        BindingConfigError: If an expression uses an unknown operator or lacks
            the values its operator requires
    """
    match_labels = selector.get("matchLabels") or {}
    if not isinstance(match_labels, dict):
        raise BindingConfigError("clusterDeploymentSelector.matchLabels must be a mapping")

    for expr in selector.get("matchExpressions") or []:
        key = expr.get("key")
        operator = expr.get("operator")
        values = expr.get("values") or []
        if not key:
            raise BindingConfigError("clusterDeploymentSelector expression is missing a key")
        if operator not in _OPERATORS:
            raise BindingConfigError(f"clusterDeploymentSelector operator {operator!r} is not supported")
        if operator in ("In", "NotIn") and not values:
            raise BindingConfigError(f"clusterDeploymentSelector operator {operator} requires values")
        if operator in ("Exists", "DoesNotExist") and values:
            raise BindingConfigError(f"clusterDeploymentSelector operator {operator} does not take values")


def matches_selector(selector: dict[str, Any], labels: dict[str, str]) -> bool:
    """Evaluate a Kubernetes label selector against a label set.

    An empty selector matches everything.
    """
    for key, value in (selector.get("matchLabels") or {}).items():
        if labels.get(key) != value:
            return False

    for expr in selector.get("matchExpressions") or []:
        key = expr["key"]
        operator = expr["operator"]
        values = expr.get("values") or []
        if operator == "In":
            if key not in labels or labels[key] not in values:
                return False
        elif operator == "NotIn":
            if key in labels and labels[key] in values:
                return False
        elif operator == "Exists":
            if key not in labels:
                return False
        elif operator == "DoesNotExist":
            if key in labels:
                return False
        else:
            raise BindingConfigError(f"clusterDeploymentSelector operator {operator!r} is not supported")

    return True


def is_in_scope(binding: IntegrationBinding, cluster: ClusterDeployment) -> bool:
    """Whether the integration should provision a PagerDuty service for a cluster.

    True iff the cluster's labels satisfy the selector, the cluster is
    installed, it is not being deleted and it has not opted out of alerts.
    """
    if cluster.deleting or not cluster.installed:
        return False
    if LABEL_CLUSTER_NOALERTS in cluster.labels:
        return False
    return matches_selector(binding.cluster_selector, cluster.labels)
