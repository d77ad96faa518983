"""Reconciliation of PagerDutyIntegration resources.

Each pass is level-triggered: it reads the integration and every
ClusterDeployment, compares what exists with what should exist and performs the
missing steps. Nothing about earlier passes is remembered, so a pass can be
replayed any number of times and a pass interrupted at any point is finished by
the next one.

Finalizers record intent before any remote side effect:

* the integration gets ``pd.managed.openshift.io/<integration>`` on its first
  pass, and that pass ends there, asking to be requeued;
* a cluster gets the same finalizer before its PagerDuty service is created,
  and loses it only after the service and the derived objects are gone.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable

from .. import metrics
from ..builders.client import create_pagerduty_client, resolve_api_key
from ..builders.resources import (
    build_config_map,
    build_secret,
    build_service_config,
    build_sync_set,
    config_map_name,
    legacy_config_map_name,
    legacy_secret_name,
    legacy_sync_set_name,
    secret_name,
    sync_set_name,
)
from ..constants import (
    KIND_CLUSTER_DEPLOYMENT,
    KIND_CONFIG_MAP,
    KIND_INTEGRATION,
    KIND_SECRET,
    KIND_SYNC_SET,
    LEGACY_FINALIZER,
    PAGERDUTY_SECRET_KEY,
)
from ..models import BindingConfigError, ClusterDeployment, IntegrationBinding, ServiceRecord
from ..services.kube.base import NotFoundError, ResourceStore
from ..services.pagerduty.base import PagerDutyClient, ServiceNotFoundError
from ..tracing import trace_span
from ..utils.finalizers import add_finalizer, finalizer_for, has_finalizer, remove_finalizers
from ..utils.secrets import find_secret_value
from .selector import is_in_scope, matches_selector, validate_selector

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str], PagerDutyClient]


@dataclass
class ReconcileResult:
    """Outcome of a reconcile pass."""

    requeue: bool = False
    provisioned: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    managed: int = 0


class ClusterReconcileError(Exception):
    """One or more clusters failed to reconcile; the whole pass must be retried."""

    def __init__(self, failures: dict[str, Exception], result: ReconcileResult) -> None:
        self.failures = failures
        self.result = result
        details = "; ".join(f"{key}: {error}" for key, error in sorted(failures.items()))
        super().__init__(f"failed to reconcile {len(failures)} cluster(s): {details}")


def _is_subset(desired: Any, actual: Any) -> bool:
    if isinstance(desired, dict):
        if not isinstance(actual, dict):
            return False
        return all(_is_subset(value, actual.get(key)) for key, value in desired.items())
    if isinstance(desired, list):
        if not isinstance(actual, list) or len(desired) != len(actual):
            return False
        return all(_is_subset(d, a) for d, a in zip(desired, actual))
    return desired == actual


def _needs_update(existing: dict[str, Any], desired: dict[str, Any]) -> bool:
    """Whether an existing object differs from the desired one in any field we own."""
    for key, value in desired.items():
        if key in ("apiVersion", "kind"):
            continue
        if key == "metadata":
            labels = value.get("labels") or {}
            if not _is_subset(labels, existing.get("metadata", {}).get("labels") or {}):
                return True
            continue
        if not _is_subset(value, existing.get(key)):
            return True
    return False


def _merge(existing: dict[str, Any], desired: dict[str, Any]) -> dict[str, Any]:
    # Keeps the existing metadata (resourceVersion included) so the write is conditional
    updated = copy.deepcopy(existing)
    for key, value in desired.items():
        if key in ("apiVersion", "kind"):
            continue
        if key == "metadata":
            labels = updated.setdefault("metadata", {}).get("labels") or {}
            labels.update(value.get("labels") or {})
            updated["metadata"]["labels"] = labels
            continue
        updated[key] = copy.deepcopy(value)
    return updated


class _IntegrationPass:
    """State for one reconcile pass of one integration."""

    def __init__(self, store: ResourceStore, client_factory: ClientFactory, binding: IntegrationBinding) -> None:
        self.store = store
        self.client_factory = client_factory
        self.binding = binding
        self.finalizer = finalizer_for(binding.name)
        self._client: PagerDutyClient | None = None

    @property
    def client(self) -> PagerDutyClient:
        """PagerDuty client, built on first use so passes without remote work never read the API key."""
        if self._client is None:
            self._client = self.client_factory(resolve_api_key(self.store, self.binding))
        return self._client

    def close(self) -> None:
        close = getattr(self._client, "close", None)
        if callable(close):
            close()

    def claims_legacy(self, cd_obj: dict[str, Any], cluster: ClusterDeployment) -> bool:
        """Whether this integration is responsible for a cluster's legacy artifacts.

        A deleting cluster is claimed by any integration that sees it, so the
        legacy finalizer is released even after the cluster left every selector.
        """
        if not has_finalizer(cd_obj, LEGACY_FINALIZER):
            return False
        if cluster.deleting:
            return True
        try:
            return matches_selector(self.binding.cluster_selector, cluster.labels)
        except BindingConfigError:
            return False

    # Store helpers

    def _get_optional(self, kind: str, namespace: str, name: str) -> dict[str, Any] | None:
        try:
            return self.store.get(kind, namespace, name)
        except NotFoundError:
            return None

    def _delete_optional(self, kind: str, namespace: str, name: str) -> bool:
        try:
            self.store.delete(kind, namespace, name)
        except NotFoundError:
            return False
        logger.info(f"Deleted {kind} {namespace}/{name}")
        return True

    def _upsert(self, kind: str, desired: dict[str, Any], existing: dict[str, Any] | None) -> bool:
        meta = desired["metadata"]
        if existing is None:
            self.store.create(kind, desired)
            logger.info(f"Created {kind} {meta['namespace']}/{meta['name']}")
            return True
        if not _needs_update(existing, desired):
            return False
        self.store.update(kind, _merge(existing, desired))
        logger.info(f"Updated {kind} {meta['namespace']}/{meta['name']}")
        return True

    def _update_cluster(self, cd_obj: dict[str, Any], tolerate_missing: bool = False) -> dict[str, Any]:
        try:
            return self.store.update(KIND_CLUSTER_DEPLOYMENT, cd_obj)
        except NotFoundError:
            if not tolerate_missing:
                raise
            return cd_obj

    # Per-cluster paths

    def ensure_cluster(self, cd_obj: dict[str, Any], cluster: ClusterDeployment) -> bool:
        """Create or repair the PagerDuty service and derived objects of an in-scope cluster.

        Returns:
            True if anything was created or changed besides the finalizer
        """
        binding = self.binding
        namespace = cluster.namespace
        prefix = binding.service_prefix
        changed = False

        # Intent first: once this write lands, cleanup is guaranteed to run
        if add_finalizer(cd_obj, self.finalizer):
            cd_obj = self._update_cluster(cd_obj)
            logger.info(f"Added finalizer {self.finalizer} to ClusterDeployment {namespace}/{cluster.name}")

        cm_name = config_map_name(prefix, cluster.name)
        config_map = self._get_optional(KIND_CONFIG_MAP, namespace, cm_name)
        record = ServiceRecord.from_config_data(config_map.get("data")) if config_map else None

        legacy_cm_name = legacy_config_map_name(cluster.name)
        legacy_config_map = self._get_optional(KIND_CONFIG_MAP, namespace, legacy_cm_name)
        legacy_record = (
            ServiceRecord.from_config_data(legacy_config_map.get("data")) if legacy_config_map else None
        )

        if record is None and legacy_record is not None:
            logger.info(
                f"Adopting legacy PagerDuty service {legacy_record.service_id} for cluster "
                f"{namespace}/{cluster.name}"
            )
            record = legacy_record
            self._upsert(KIND_CONFIG_MAP, build_config_map(namespace, cm_name, record, binding.name), config_map)
            changed = True

        secret_obj = self._get_optional(KIND_SECRET, namespace, secret_name(prefix, cluster.name))

        if record is None:
            service_config = build_service_config(binding, cluster)
            service_id = self.client.create_service(service_config)
            metrics.service_operations_total.labels(operation="create", result="success").inc()
            logger.info(f"Created PagerDuty service {service_id} for cluster {namespace}/{cluster.name}")

            # Record the service before anything else can fail so it is never orphaned
            record = ServiceRecord(
                service_id=service_id,
                service_name=service_config.name,
                escalation_policy_id=service_config.escalation_policy_id,
                resolve_timeout=service_config.resolve_timeout,
                acknowledge_timeout=service_config.acknowledge_timeout,
            )
            self._upsert(KIND_CONFIG_MAP, build_config_map(namespace, cm_name, record, binding.name), config_map)
            integration_key = self.client.get_integration_key(service_id)
            changed = True
        else:
            integration_key = find_secret_value(secret_obj, PAGERDUTY_SECRET_KEY)
            if integration_key is None:
                integration_key = self.client.get_integration_key(record.service_id)

        secret = build_secret(namespace, secret_name(prefix, cluster.name), integration_key, binding.name)
        changed |= self._upsert(KIND_SECRET, secret, secret_obj)

        sync_set = build_sync_set(namespace, cluster.name, secret, binding)
        existing_sync_set = self._get_optional(KIND_SYNC_SET, namespace, sync_set_name(prefix, cluster.name))
        changed |= self._upsert(KIND_SYNC_SET, sync_set, existing_sync_set)

        if legacy_record is not None:
            if legacy_record.service_id == record.service_id:
                self._delete_optional(KIND_SYNC_SET, namespace, legacy_sync_set_name(cluster.name))
                self._delete_optional(KIND_SECRET, namespace, legacy_secret_name())
                self._delete_optional(KIND_CONFIG_MAP, namespace, legacy_cm_name)
                if remove_finalizers(cd_obj, LEGACY_FINALIZER):
                    self._update_cluster(cd_obj)
                changed = True
            else:
                logger.warning(
                    f"Legacy ConfigMap {namespace}/{legacy_cm_name} references service "
                    f"{legacy_record.service_id}, which differs from {record.service_id}; leaving it in place"
                )

        return changed

    def remove_cluster(self, cd_obj: dict[str, Any], cluster: ClusterDeployment, release_legacy: bool) -> bool:
        """Delete the PagerDuty service and derived objects of a cluster, then release it.

        Missing artifacts are skipped: without a recorded service ID there is no
        remote call, but whatever local objects remain are still removed.

        Returns:
            True if anything was deleted
        """
        namespace = cluster.namespace
        prefix = self.binding.service_prefix
        removed = False

        cm_name = config_map_name(prefix, cluster.name)
        config_map = self._get_optional(KIND_CONFIG_MAP, namespace, cm_name)
        records = []
        record = ServiceRecord.from_config_data(config_map.get("data")) if config_map else None
        if record is not None:
            records.append(record)

        if release_legacy:
            legacy_config_map = self._get_optional(KIND_CONFIG_MAP, namespace, legacy_config_map_name(cluster.name))
            legacy_record = (
                ServiceRecord.from_config_data(legacy_config_map.get("data")) if legacy_config_map else None
            )
            if legacy_record is not None and (record is None or legacy_record.service_id != record.service_id):
                records.append(legacy_record)

        if not records:
            logger.info(f"No PagerDuty service recorded for cluster {namespace}/{cluster.name}, skipping remote delete")

        for service in records:
            try:
                self.client.delete_service(service.service_id)
                metrics.service_operations_total.labels(operation="delete", result="success").inc()
                logger.info(f"Deleted PagerDuty service {service.service_id} for cluster {namespace}/{cluster.name}")
            except ServiceNotFoundError:
                metrics.service_operations_total.labels(operation="delete", result="not_found").inc()
                logger.info(f"PagerDuty service {service.service_id} already deleted")
            removed = True

        removed |= self._delete_optional(KIND_SYNC_SET, namespace, sync_set_name(prefix, cluster.name))
        removed |= self._delete_optional(KIND_SECRET, namespace, secret_name(prefix, cluster.name))
        removed |= self._delete_optional(KIND_CONFIG_MAP, namespace, cm_name)

        if release_legacy:
            removed |= self._delete_optional(KIND_SYNC_SET, namespace, legacy_sync_set_name(cluster.name))
            removed |= self._delete_optional(KIND_SECRET, namespace, legacy_secret_name())
            removed |= self._delete_optional(KIND_CONFIG_MAP, namespace, legacy_config_map_name(cluster.name))

        released = [self.finalizer, LEGACY_FINALIZER] if release_legacy else [self.finalizer]
        if remove_finalizers(cd_obj, *released):
            self._update_cluster(cd_obj, tolerate_missing=True)
            logger.info(f"Removed finalizer {self.finalizer} from ClusterDeployment {namespace}/{cluster.name}")

        return removed


class Reconciler:
    """Drives PagerDutyIntegration resources towards their desired state.

    Args:
        store: Object store holding integrations, cluster deployments and derived objects
        client_factory: Builds a PagerDuty client from an API key
    """

    def __init__(self, store: ResourceStore, client_factory: ClientFactory = create_pagerduty_client) -> None:
        self.store = store
        self.client_factory = client_factory

    def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """Run one reconcile pass for the named PagerDutyIntegration.

        Returns:
            ReconcileResult; ``requeue`` is set when the pass only registered the
            integration's finalizer

        Raises:
            BindingConfigError: If the integration is misconfigured
            ClusterReconcileError: If any cluster failed; the pass should be retried
        """
        with trace_span("reconcile_integration", kind=KIND_INTEGRATION, attributes={"integration.name": name}):
            try:
                obj = self.store.get(KIND_INTEGRATION, namespace, name)
            except NotFoundError:
                logger.info(f"PagerDutyIntegration {namespace}/{name} not found, nothing to do")
                return ReconcileResult()

            if obj.get("metadata", {}).get("deletionTimestamp") and not has_finalizer(obj, finalizer_for(name)):
                # Never claimed any cluster, so there is nothing to clean up
                logger.info(f"PagerDutyIntegration {namespace}/{name} is being deleted without its finalizer")
                return ReconcileResult()

            binding = IntegrationBinding.from_object(obj)
            session = _IntegrationPass(self.store, self.client_factory, binding)
            try:
                if binding.deleting:
                    return self._teardown(obj, session)

                if add_finalizer(obj, session.finalizer):
                    self.store.update(KIND_INTEGRATION, obj)
                    logger.info(f"Added finalizer {session.finalizer} to PagerDutyIntegration {namespace}/{name}")
                    return ReconcileResult(requeue=True)

                validate_selector(binding.cluster_selector)
                return self._sync(session)
            finally:
                session.close()

    def _sync(self, session: _IntegrationPass) -> ReconcileResult:
        binding = session.binding
        result = ReconcileResult()
        failures: dict[str, Exception] = {}

        for cd_obj in self.store.list(KIND_CLUSTER_DEPLOYMENT):
            cluster = ClusterDeployment.from_object(cd_obj)
            key = f"{cluster.namespace}/{cluster.name}"
            with trace_span("reconcile_cluster", kind=KIND_CLUSTER_DEPLOYMENT, attributes={"cluster.name": key}):
                try:
                    if is_in_scope(binding, cluster):
                        if session.ensure_cluster(cd_obj, cluster):
                            result.provisioned.append(key)
                        result.managed += 1
                        continue

                    release_legacy = session.claims_legacy(cd_obj, cluster)
                    if has_finalizer(cd_obj, session.finalizer) or release_legacy:
                        logger.info(f"ClusterDeployment {key} is out of scope, removing PagerDuty service")
                        if session.remove_cluster(cd_obj, cluster, release_legacy):
                            result.removed.append(key)
                except BindingConfigError:
                    raise
                except Exception as e:
                    logger.error(f"Failed to reconcile ClusterDeployment {key}: {e}")
                    failures[key] = e

        metrics.managed_clusters.labels(integration=binding.name).set(result.managed)
        if failures:
            raise ClusterReconcileError(failures, result)
        return result

    def _teardown(self, obj: dict[str, Any], session: _IntegrationPass) -> ReconcileResult:
        binding = session.binding
        result = ReconcileResult()
        failures: dict[str, Exception] = {}
        logger.info(f"PagerDutyIntegration {binding.namespace}/{binding.name} is being deleted, cleaning up clusters")

        for cd_obj in self.store.list(KIND_CLUSTER_DEPLOYMENT):
            cluster = ClusterDeployment.from_object(cd_obj)
            key = f"{cluster.namespace}/{cluster.name}"
            release_legacy = session.claims_legacy(cd_obj, cluster)
            if not has_finalizer(cd_obj, session.finalizer) and not release_legacy:
                continue
            with trace_span("teardown_cluster", kind=KIND_CLUSTER_DEPLOYMENT, attributes={"cluster.name": key}):
                try:
                    if session.remove_cluster(cd_obj, cluster, release_legacy):
                        result.removed.append(key)
                except BindingConfigError:
                    raise
                except Exception as e:
                    logger.error(f"Failed to clean up ClusterDeployment {key}: {e}")
                    failures[key] = e

        if failures:
            raise ClusterReconcileError(failures, result)

        metrics.managed_clusters.labels(integration=binding.name).set(0)
        if remove_finalizers(obj, session.finalizer):
            try:
                self.store.update(KIND_INTEGRATION, obj)
            except NotFoundError:
                pass
            logger.info(f"Removed finalizer {session.finalizer} from PagerDutyIntegration {binding.namespace}/{binding.name}")
        return result
