"""Shared plumbing for kopf handlers: structured logging, metrics and status."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, TypeVar

import kopf

from .. import metrics
from ..logging import log_resource_event
from ..tracing import trace_span
from ..utils.errors import sanitize_dict, sanitize_exception

_T = TypeVar("_T")

CONTROLLER_NAME = "pagerduty-operator"


class BaseHandler:
    """Base class for the operator's kopf handlers.

    Log lines, metrics and trace spans produced through these helpers are
    labelled with the handler's resource ``kind``.
    """

    def __init__(self, kind: str):
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _get_resource_context(self, meta: dict[str, Any]) -> dict[str, Any]:
        return {
            "name": meta.get("name", "unknown"),
            "namespace": meta.get("namespace", "default"),
            "uid": meta.get("uid", "unknown"),
        }

    def log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **fields: Any,
    ) -> None:
        """Write a structured log line about the resource described by ``meta``."""
        ctx = self._get_resource_context(meta)
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=ctx["name"],
            namespace=ctx["namespace"],
            uid=ctx["uid"],
            event=event,
            reason=reason,
            message=message,
            level=level,
            **sanitize_dict(fields),
        )

    def log_info(self, meta: dict[str, Any], message: str, event: str = "info", reason: str = "Info", **fields: Any) -> None:
        self.log(logging.INFO, meta, message, event, reason, **fields)

    def log_warning(
        self, meta: dict[str, Any], message: str, event: str = "warning", reason: str = "Warning", **fields: Any
    ) -> None:
        self.log(logging.WARNING, meta, message, event, reason, **fields)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **fields: Any,
    ) -> None:
        """Log an error, attaching the exception type and its sanitized message."""
        if error is not None:
            fields["error"] = sanitize_exception(error)
            fields["error_type"] = type(error).__name__
        self.log(logging.ERROR, meta, message, event, reason, **fields)

    def reconcile_with_metrics(self, meta: dict[str, Any], reconcile_fn: Callable[[], _T]) -> _T:
        """Run a handler body inside a trace span, recording its outcome and duration.

        ``kopf.TemporaryError`` counts as a retry; any other exception is logged,
        counted by type and re-raised for kopf to retry.
        """
        outcome = "error"
        start_time = time.monotonic()
        metrics.reconcile_total.labels(kind=self.kind, result="started").inc()

        with trace_span(f"handle_{self.kind.lower()}", kind=self.kind, attributes={"resource.name": meta.get("name", "")}):
            try:
                result = reconcile_fn()
                outcome = "success"
                return result
            except kopf.TemporaryError:
                outcome = "retry"
                raise
            except Exception as e:
                metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
                self.log_error(meta, "Reconciliation failed", error=e, reason="ReconciliationFailed")
                raise
            finally:
                metrics.reconcile_total.labels(kind=self.kind, result=outcome).inc()
                metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(time.monotonic() - start_time)

    def update_resource_status(
        self,
        patch: kopf.Patch,
        meta: dict[str, Any],
        status_data: dict[str, Any] | None = None,
    ) -> None:
        """Stage a status update that always records the observed generation."""
        patch.status.update({"observedGeneration": meta.get("generation", 0), **(status_data or {})})
