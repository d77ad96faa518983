"""Status conditions on PagerDutyIntegration resources.

Three condition types are maintained: ``Ready``, ``ConfigurationInvalid`` and
``ReconcileFailed``. Each is a boolean with a fixed reason per value, so the
setters below only take the boolean and a message.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import COND_CONFIGURATION_INVALID, COND_READY, COND_RECONCILE_FAILED

Conditions = list[dict[str, Any]]


def update_condition(
    conditions: Conditions,
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> Conditions:
    """Return a copy of ``conditions`` with one condition set.

    ``lastTransitionTime`` is carried over from the previous condition of the
    same type unless the status changes.

    Args:
        conditions: Current conditions; not modified
        condition_type: Condition type to set
        status: "True", "False" or "Unknown"
        reason: CamelCase reason
        message: Human-readable message
        observed_generation: Generation the condition describes
    """
    now = datetime.now(timezone.utc).isoformat()
    previous = next((c for c in conditions if c.get("type") == condition_type), None)

    condition: dict[str, Any] = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }
    if previous is not None and previous.get("status") == status:
        condition["lastTransitionTime"] = previous.get("lastTransitionTime", now)
    if observed_generation is not None:
        condition["observedGeneration"] = observed_generation

    if previous is None:
        return [dict(c) for c in conditions] + [condition]
    return [condition if c is previous else dict(c) for c in conditions]


def _set_flag(
    conditions: Conditions,
    condition_type: str,
    value: bool,
    reasons: tuple[str, str],
    message: str,
    observed_generation: int | None,
) -> Conditions:
    true_reason, false_reason = reasons
    return update_condition(
        conditions,
        condition_type,
        "True" if value else "False",
        true_reason if value else false_reason,
        message,
        observed_generation,
    )


def set_ready_condition(
    conditions: Conditions,
    status: bool,
    message: str,
    observed_generation: int | None = None,
) -> Conditions:
    return _set_flag(conditions, COND_READY, status, ("Reconciled", "NotReconciled"), message, observed_generation)


def set_configuration_invalid_condition(
    conditions: Conditions,
    status: bool,
    message: str,
    observed_generation: int | None = None,
) -> Conditions:
    return _set_flag(
        conditions,
        COND_CONFIGURATION_INVALID,
        status,
        ("ConfigurationInvalid", "ConfigurationValid"),
        message,
        observed_generation,
    )


def set_reconcile_failed_condition(
    conditions: Conditions,
    status: bool,
    message: str,
    observed_generation: int | None = None,
) -> Conditions:
    return _set_flag(
        conditions,
        COND_RECONCILE_FAILED,
        status,
        ("ReconcileFailed", "ReconcileSucceeded"),
        message,
        observed_generation,
    )
