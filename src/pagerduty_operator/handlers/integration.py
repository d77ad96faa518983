"""Handlers for PagerDutyIntegration and ClusterDeployment resources."""

from __future__ import annotations

import os
import threading
from datetime import datetime, timezone
from typing import Any

import kopf

from .. import metrics
from ..constants import (
    API_GROUP_VERSION,
    HIVE_GROUP,
    HIVE_VERSION,
    KIND_INTEGRATION,
    LEGACY_FINALIZER,
    PLURAL_CLUSTER_DEPLOYMENTS,
)
from ..models import BindingConfigError, ClusterDeployment, IntegrationBinding
from ..reconciler import ClusterReconcileError, Reconciler, ReconcileResult, is_in_scope
from ..reconciler.selector import matches_selector
from ..services.kube.base import ResourceStore
from ..services.kube.store import KubernetesResourceStore
from ..utils.conditions import (
    set_configuration_invalid_condition,
    set_ready_condition,
    set_reconcile_failed_condition,
)
from ..utils.context import with_correlation_id
from ..utils.errors import sanitize_exception
from ..utils.events import (
    emit_configuration_invalid,
    emit_reconcile_failed,
    emit_service_provisioned,
    emit_service_removed,
)
from ..utils.finalizers import finalizer_for, has_finalizer
from .base import BaseHandler

RESYNC_INTERVAL_SECONDS = float(os.getenv("RESYNC_INTERVAL_SECONDS", "300"))
CONFIG_ERROR_RETRY_DELAY = float(os.getenv("CONFIG_ERROR_RETRY_DELAY", "300"))
REQUEUE_DELAY = 1.0


class IntegrationHandler(BaseHandler):
    """Handler for PagerDutyIntegration resources.

    Every trigger (create, update, resume, resync timer, deletion, or a change
    to a ClusterDeployment) runs a full reconcile pass for the integration.
    Passes for the same integration never overlap.
    """

    def __init__(self, store: ResourceStore | None = None, reconciler: Reconciler | None = None):
        """Initialize integration handler."""
        super().__init__(KIND_INTEGRATION)
        self._store = store
        self._reconciler = reconciler
        self._locks: dict[tuple[str, str], threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._cluster_fingerprints: dict[str, tuple[Any, ...]] = {}

    @property
    def store(self) -> ResourceStore:
        if self._store is None:
            self._store = KubernetesResourceStore()
        return self._store

    @property
    def reconciler(self) -> Reconciler:
        if self._reconciler is None:
            self._reconciler = Reconciler(self.store)
        return self._reconciler

    def _lock_for(self, namespace: str, name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault((namespace, name), threading.Lock())

    def _run(self, namespace: str, name: str) -> ReconcileResult:
        with self._lock_for(namespace, name):
            return self.reconciler.reconcile(namespace, name)

    def _emit_progress(self, body: dict[str, Any], result: ReconcileResult) -> None:
        for cluster in result.provisioned:
            emit_service_provisioned(body, cluster)
        for cluster in result.removed:
            emit_service_removed(body, cluster)

    def reconcile(
        self,
        body: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Reconcile a PagerDutyIntegration and record the outcome in its status."""
        namespace = meta.get("namespace", "default")
        name = meta.get("name", "unknown")
        generation = meta.get("generation", 0)
        conditions = status.get("conditions", [])

        with with_correlation_id(integration=f"{namespace}/{name}"):
            try:
                result = self._run(namespace, name)
            except BindingConfigError as e:
                error_msg = sanitize_exception(e)
                self.log_error(meta, f"Invalid configuration: {error_msg}", error=e, reason="ConfigurationInvalid")
                emit_configuration_invalid(body, error_msg)
                conditions = set_configuration_invalid_condition(conditions, True, error_msg, generation)
                conditions = set_ready_condition(conditions, False, error_msg, generation)
                self.update_resource_status(patch, meta, {"conditions": conditions})
                raise kopf.TemporaryError(error_msg, delay=CONFIG_ERROR_RETRY_DELAY)
            except ClusterReconcileError as e:
                error_msg = sanitize_exception(e)
                self._emit_progress(body, e.result)
                self.log_error(meta, error_msg, error=e, reason="ReconcileFailed")
                emit_reconcile_failed(body, error_msg)
                conditions = set_configuration_invalid_condition(conditions, False, "Configuration is valid", generation)
                conditions = set_reconcile_failed_condition(conditions, True, error_msg, generation)
                conditions = set_ready_condition(conditions, False, error_msg, generation)
                self.update_resource_status(patch, meta, {"conditions": conditions})
                raise

            if result.requeue:
                self.log_info(meta, "Finalizer registered, requeueing", reason="FinalizerAdded")
                raise kopf.TemporaryError("Finalizer registered, requeueing", delay=REQUEUE_DELAY)

            self._emit_progress(body, result)
            message = f"{result.managed} cluster(s) provisioned"
            conditions = set_configuration_invalid_condition(conditions, False, "Configuration is valid", generation)
            conditions = set_reconcile_failed_condition(conditions, False, "Reconciliation succeeded", generation)
            conditions = set_ready_condition(conditions, True, message, generation)
            self.log_info(
                meta,
                message,
                reason="Reconciled",
                provisioned=result.provisioned,
                removed=result.removed,
            )
            self.update_resource_status(patch, meta, {
                "conditions": conditions,
                "clusterCount": result.managed,
                "lastSyncTime": datetime.now(timezone.utc).isoformat(),
            })

    def delete(self, body: dict[str, Any], meta: dict[str, Any]) -> None:
        """Tear down every cluster's PagerDuty service before the integration goes away."""
        namespace = meta.get("namespace", "default")
        name = meta.get("name", "unknown")
        self.log_info(meta, f"PagerDutyIntegration {name} is being deleted", event="deletion", reason="Deletion")

        with with_correlation_id(integration=f"{namespace}/{name}"):
            try:
                result = self._run(namespace, name)
            except ClusterReconcileError as e:
                self._emit_progress(body, e.result)
                emit_reconcile_failed(body, sanitize_exception(e))
                raise
            self._emit_progress(body, result)

    def _fingerprint(self, cluster: ClusterDeployment) -> tuple[Any, ...]:
        return (
            tuple(sorted(cluster.labels.items())),
            cluster.installed,
            cluster.deleting,
            tuple(sorted(cluster.finalizers)),
        )

    def _is_relevant(self, binding_obj: dict[str, Any], cd_body: dict[str, Any], cluster: ClusterDeployment) -> bool:
        try:
            binding = IntegrationBinding.from_object(binding_obj)
            if is_in_scope(binding, cluster):
                return True
            if has_finalizer(cd_body, finalizer_for(binding.name)):
                return True
            if not has_finalizer(cd_body, LEGACY_FINALIZER):
                return False
            return cluster.deleting or matches_selector(binding.cluster_selector, cluster.labels)
        except BindingConfigError:
            # A misconfigured integration is retried by its own handler
            return False

    def cluster_changed(self, event_type: str | None, body: dict[str, Any]) -> None:
        """Reconcile the integrations affected by a ClusterDeployment change."""
        cluster = ClusterDeployment.from_object(body)
        uid = body.get("metadata", {}).get("uid") or f"{cluster.namespace}/{cluster.name}"

        if event_type == "DELETED":
            self._cluster_fingerprints.pop(uid, None)
        else:
            fingerprint = self._fingerprint(cluster)
            if self._cluster_fingerprints.get(uid) == fingerprint:
                return
            self._cluster_fingerprints[uid] = fingerprint

        for binding_obj in self.store.list(KIND_INTEGRATION):
            binding_meta = binding_obj.get("metadata", {})
            if not self._is_relevant(binding_obj, body, cluster):
                continue
            namespace = binding_meta.get("namespace", "default")
            name = binding_meta.get("name", "unknown")
            cluster_key = f"{cluster.namespace}/{cluster.name}"
            with with_correlation_id(integration=f"{namespace}/{name}", cluster=cluster_key):
                try:
                    result = self._run(namespace, name)
                    if result.requeue:
                        result = self._run(namespace, name)
                    self._emit_progress(binding_obj, result)
                except ClusterReconcileError as e:
                    # The integration's resync timer retries the pass
                    self._emit_progress(binding_obj, e.result)
                    metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
                    self.log_error(binding_meta, "Reconciliation after cluster change failed", error=e)
                except BindingConfigError as e:
                    self.log_warning(binding_meta, f"Invalid configuration: {sanitize_exception(e)}")


# Global handler instance
_handler = IntegrationHandler()


@kopf.on.create(API_GROUP_VERSION, KIND_INTEGRATION)
@kopf.on.update(API_GROUP_VERSION, KIND_INTEGRATION)
@kopf.on.resume(API_GROUP_VERSION, KIND_INTEGRATION)
def handle_integration(
    body: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Handle PagerDutyIntegration reconciliation."""
    _handler.reconcile_with_metrics(meta, lambda: _handler.reconcile(body, meta, status, patch))


@kopf.timer(API_GROUP_VERSION, KIND_INTEGRATION, interval=RESYNC_INTERVAL_SECONDS, initial_delay=RESYNC_INTERVAL_SECONDS)
def resync_integration(
    body: dict[str, Any],
    meta: dict[str, Any],
    status: dict[str, Any],
    patch: kopf.Patch,
    **kwargs: Any,
) -> None:
    """Periodically re-run the reconcile pass to repair drift."""
    _handler.reconcile_with_metrics(meta, lambda: _handler.reconcile(body, meta, status, patch))


@kopf.on.delete(API_GROUP_VERSION, KIND_INTEGRATION)
def handle_integration_delete(
    body: dict[str, Any],
    meta: dict[str, Any],
    **kwargs: Any,
) -> None:
    """Handle PagerDutyIntegration deletion."""
    _handler.reconcile_with_metrics(meta, lambda: _handler.delete(body, meta))


@kopf.on.event(HIVE_GROUP, HIVE_VERSION, PLURAL_CLUSTER_DEPLOYMENTS)
def handle_cluster_deployment_event(
    type: str | None,
    body: dict[str, Any],
    **kwargs: Any,
) -> None:
    """Handle ClusterDeployment changes."""
    if type is None:
        # Initial listing; integrations reconcile themselves on resume
        return
    _handler.cluster_changed(type, body)
