"""Tests for the PagerDutyIntegration kopf handlers."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock, patch

import kopf
import pytest

from pagerduty_operator.constants import KIND_CLUSTER_DEPLOYMENT, KIND_INTEGRATION, LEGACY_FINALIZER
from pagerduty_operator.handlers import integration as integration_module
from pagerduty_operator.handlers.integration import IntegrationHandler
from pagerduty_operator.models import BindingConfigError
from pagerduty_operator.reconciler import ClusterReconcileError, ReconcileResult

OPERATOR_NS = "pagerduty-operator"
CLUSTER_NS = "uhc-production-1234"
FINALIZER = "pd.managed.openshift.io/osd"


def conditions_by_type(patch: kopf.Patch) -> dict[str, dict[str, Any]]:
    return {c["type"]: c for c in patch.status["conditions"]}


@pytest.fixture(autouse=True)
def events():
    """Capture the Kubernetes events the handler emits."""
    with patch.object(integration_module, "emit_service_provisioned") as provisioned, \
            patch.object(integration_module, "emit_service_removed") as removed, \
            patch.object(integration_module, "emit_reconcile_failed") as failed, \
            patch.object(integration_module, "emit_configuration_invalid") as invalid:
        yield MagicMock(provisioned=provisioned, removed=removed, failed=failed, invalid=invalid)


class TestReconcileHandler:
    """Test cases for IntegrationHandler.reconcile with a real reconciler."""

    def _run(self, handler: IntegrationHandler, store) -> kopf.Patch:
        body = store.get(KIND_INTEGRATION, OPERATOR_NS, "osd")
        patch_obj = kopf.Patch()
        handler.reconcile(body, body["metadata"], body.get("status", {}), patch_obj)
        return patch_obj

    def test_requeues_after_adding_finalizer(self, build_env, make_integration, make_cluster):
        """Test that the finalizer-only pass asks kopf to retry quickly."""
        store, reconciler = build_env([make_integration()], [make_cluster()])
        handler = IntegrationHandler(store=store, reconciler=reconciler)

        with pytest.raises(kopf.TemporaryError) as exc_info:
            self._run(handler, store)

        assert exc_info.value.delay == 1.0

    def test_success_updates_status_and_emits_events(self, build_env, make_integration, make_cluster, events):
        """Test status and events after provisioning a cluster."""
        store, reconciler = build_env([make_integration(finalizers=[FINALIZER])], [make_cluster()])
        handler = IntegrationHandler(store=store, reconciler=reconciler)

        patch_obj = self._run(handler, store)

        assert patch_obj.status["clusterCount"] == 1
        assert patch_obj.status["observedGeneration"] == 1
        assert patch_obj.status["lastSyncTime"]
        conditions = conditions_by_type(patch_obj)
        assert conditions["Ready"]["status"] == "True"
        assert conditions["ConfigurationInvalid"]["status"] == "False"
        assert conditions["ReconcileFailed"]["status"] == "False"
        events.provisioned.assert_called_once()
        assert events.provisioned.call_args[0][1] == f"{CLUSTER_NS}/test-cluster"

    def test_configuration_error(self, build_env, make_integration, make_cluster, events):
        """Test that a misconfigured integration is retried after the configured delay."""
        selector = {"matchExpressions": [{"key": "env", "operator": "Gt", "values": ["1"]}]}
        store, reconciler = build_env(
            [make_integration(selector=selector, finalizers=[FINALIZER])], [make_cluster()]
        )
        handler = IntegrationHandler(store=store, reconciler=reconciler)
        body = store.get(KIND_INTEGRATION, OPERATOR_NS, "osd")
        patch_obj = kopf.Patch()

        with pytest.raises(kopf.TemporaryError) as exc_info:
            handler.reconcile(body, body["metadata"], {}, patch_obj)

        assert exc_info.value.delay == integration_module.CONFIG_ERROR_RETRY_DELAY
        conditions = conditions_by_type(patch_obj)
        assert conditions["ConfigurationInvalid"]["status"] == "True"
        assert conditions["Ready"]["status"] == "False"
        events.invalid.assert_called_once()


class TestHandlerErrors:
    """Test cases for error mapping with a stubbed reconciler."""

    BODY = {"metadata": {"name": "osd", "namespace": OPERATOR_NS, "uid": "uid-1", "generation": 2}}

    def test_cluster_failures_propagate(self, events):
        """Test that per-cluster failures are reported and re-raised for kopf to retry."""
        result = ReconcileResult(provisioned=[f"{CLUSTER_NS}/ok"])
        reconciler = MagicMock()
        reconciler.reconcile.side_effect = ClusterReconcileError({f"{CLUSTER_NS}/bad": RuntimeError("503")}, result)
        handler = IntegrationHandler(store=MagicMock(), reconciler=reconciler)
        patch_obj = kopf.Patch()

        with pytest.raises(ClusterReconcileError):
            handler.reconcile(self.BODY, self.BODY["metadata"], {}, patch_obj)

        conditions = conditions_by_type(patch_obj)
        assert conditions["ReconcileFailed"]["status"] == "True"
        assert conditions["Ready"]["status"] == "False"
        events.provisioned.assert_called_once_with(self.BODY, f"{CLUSTER_NS}/ok")
        events.failed.assert_called_once()

    def test_delete_emits_removed(self, events):
        """Test that deletion reports every released cluster."""
        reconciler = MagicMock()
        reconciler.reconcile.return_value = ReconcileResult(removed=[f"{CLUSTER_NS}/a", f"{CLUSTER_NS}/b"])
        handler = IntegrationHandler(store=MagicMock(), reconciler=reconciler)

        handler.delete(self.BODY, self.BODY["metadata"])

        reconciler.reconcile.assert_called_once_with(OPERATOR_NS, "osd")
        assert events.removed.call_count == 2


class TestClusterChanged:
    """Test cases for ClusterDeployment change handling."""

    def test_reconciles_relevant_integrations_once_per_change(self, make_integration, make_cluster):
        """Test that only integrations selecting the cluster run, and repeats are skipped."""
        store = MagicMock()
        store.list.return_value = [
            make_integration(name="osd"),
            make_integration(name="other", selector={"matchLabels": {"team": "x"}}),
        ]
        reconciler = MagicMock()
        reconciler.reconcile.return_value = ReconcileResult()
        handler = IntegrationHandler(store=store, reconciler=reconciler)
        cluster = make_cluster()
        cluster["metadata"]["uid"] = "cd-uid"

        handler.cluster_changed("ADDED", cluster)
        handler.cluster_changed("MODIFIED", cluster)

        store.list.assert_called_once_with(KIND_INTEGRATION)
        reconciler.reconcile.assert_called_once_with(OPERATOR_NS, "osd")

    def test_cluster_holding_finalizer_is_relevant(self, make_integration, make_cluster):
        """Test that a cluster outside the selector still triggers its owner's cleanup."""
        store = MagicMock()
        store.list.return_value = [make_integration(name="osd")]
        reconciler = MagicMock()
        reconciler.reconcile.return_value = ReconcileResult(removed=[f"{CLUSTER_NS}/test-cluster"])
        handler = IntegrationHandler(store=store, reconciler=reconciler)

        handler.cluster_changed("MODIFIED", make_cluster(labels={}, finalizers=[FINALIZER]))

        reconciler.reconcile.assert_called_once_with(OPERATOR_NS, "osd")

    def test_deleting_legacy_cluster_is_relevant(self, make_integration, make_cluster):
        """Test that a deleting legacy cluster outside every selector still triggers cleanup."""
        store = MagicMock()
        store.list.return_value = [make_integration(name="osd")]
        reconciler = MagicMock()
        reconciler.reconcile.return_value = ReconcileResult()
        handler = IntegrationHandler(store=store, reconciler=reconciler)
        cluster = make_cluster(labels={}, finalizers=[LEGACY_FINALIZER])

        handler.cluster_changed("MODIFIED", cluster)
        reconciler.reconcile.assert_not_called()

        cluster["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
        handler.cluster_changed("MODIFIED", cluster)
        reconciler.reconcile.assert_called_once_with(OPERATOR_NS, "osd")

    def test_requeue_runs_a_second_pass(self, make_integration, make_cluster):
        """Test that a finalizer-only pass is followed immediately by a full one."""
        store = MagicMock()
        store.list.return_value = [make_integration(name="osd")]
        reconciler = MagicMock()
        reconciler.reconcile.side_effect = [ReconcileResult(requeue=True), ReconcileResult()]
        handler = IntegrationHandler(store=store, reconciler=reconciler)

        handler.cluster_changed("ADDED", make_cluster())

        assert reconciler.reconcile.call_count == 2

    def test_errors_are_logged_not_raised(self, make_integration, make_cluster):
        """Test that failures are left to the integration's own retries."""
        store = MagicMock()
        store.list.return_value = [make_integration(name="osd")]
        reconciler = MagicMock()
        reconciler.reconcile.side_effect = BindingConfigError("bad")
        handler = IntegrationHandler(store=store, reconciler=reconciler)

        handler.cluster_changed("ADDED", make_cluster())

        reconciler.reconcile.assert_called_once()


class TestKopfEntryPoints:
    """Test cases for the module-level kopf handlers."""

    def test_initial_listing_is_ignored(self):
        """Test that the initial ClusterDeployment listing does not trigger passes."""
        with patch.object(integration_module._handler, "cluster_changed") as changed:
            integration_module.handle_cluster_deployment_event(type=None, body={})
            changed.assert_not_called()

    def test_cluster_event_is_forwarded(self):
        """Test that watch events reach the handler."""
        body = {"kind": KIND_CLUSTER_DEPLOYMENT, "metadata": {"name": "cd"}}
        with patch.object(integration_module._handler, "cluster_changed") as changed:
            integration_module.handle_cluster_deployment_event(type="MODIFIED", body=body)
            changed.assert_called_once_with("MODIFIED", body)
