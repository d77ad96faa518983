"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import (
    EVENT_REASON_CONFIGURATION_INVALID,
    EVENT_REASON_RECONCILE_FAILED,
    EVENT_REASON_SERVICE_PROVISIONED,
    EVENT_REASON_SERVICE_REMOVED,
)


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body the event is attached to
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


def emit_configuration_invalid(body: dict[str, Any], message: str) -> None:
    """Emit configuration invalid event."""
    emit_event(body, EVENT_REASON_CONFIGURATION_INVALID, message, type_="Warning")


def emit_service_provisioned(body: dict[str, Any], cluster: str) -> None:
    """Emit service provisioned event."""
    emit_event(body, EVENT_REASON_SERVICE_PROVISIONED, f"PagerDuty service provisioned for cluster {cluster}")


def emit_service_removed(body: dict[str, Any], cluster: str) -> None:
    """Emit service removed event."""
    emit_event(body, EVENT_REASON_SERVICE_REMOVED, f"PagerDuty service removed for cluster {cluster}")
