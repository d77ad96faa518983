"""Shared fixtures for unit tests."""

from __future__ import annotations

from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from pagerduty_operator.constants import (
    API_GROUP_VERSION,
    HIVE_GROUP_VERSION,
    KIND_CLUSTER_DEPLOYMENT,
    KIND_INTEGRATION,
    KIND_SECRET,
    PAGERDUTY_API_SECRET_KEY,
)
from pagerduty_operator.reconciler import Reconciler
from pagerduty_operator.services.kube import InMemoryResourceStore
from pagerduty_operator.services.pagerduty.base import ServiceConfig, ServiceNotFoundError
from pagerduty_operator.utils.secrets import encode_secret_data

OPERATOR_NS = "pagerduty-operator"
CLUSTER_NS = "uhc-production-1234"


class FakePagerDuty:
    """In-memory PagerDuty account."""

    def __init__(self) -> None:
        self.services: dict[str, dict[str, Any]] = {}
        self._counter = 0

    def add_service(self, service_id: str, integration_key: str, name: str = "existing") -> None:
        self.services[service_id] = {"name": name, "key": integration_key}

    def create_service(self, config: ServiceConfig) -> str:
        self._counter += 1
        service_id = f"PSVC{self._counter:03d}"
        self.services[service_id] = {
            "name": config.name,
            "config": config,
            "key": f"routing-key-{self._counter:03d}",
        }
        return service_id

    def get_integration_key(self, service_id: str) -> str:
        if service_id not in self.services:
            raise ServiceNotFoundError(service_id)
        return self.services[service_id]["key"]

    def delete_service(self, service_id: str) -> None:
        if service_id not in self.services:
            raise ServiceNotFoundError(service_id)
        del self.services[service_id]


@pytest.fixture
def fake_pagerduty() -> FakePagerDuty:
    """A fake PagerDuty account."""
    return FakePagerDuty()


@pytest.fixture
def pd_client(fake_pagerduty: FakePagerDuty) -> MagicMock:
    """PagerDuty client that records calls and forwards them to the fake account."""
    return MagicMock(wraps=fake_pagerduty)


@pytest.fixture
def make_integration() -> Callable[..., dict[str, Any]]:
    """Factory for PagerDutyIntegration objects."""

    def _make(
        name: str = "osd",
        prefix: str = "osd",
        selector: dict[str, Any] | None = None,
        finalizers: list[str] | None = None,
        **spec: Any,
    ) -> dict[str, Any]:
        body_spec = {
            "escalationPolicy": "PESC123",
            "resolveTimeout": 300,
            "acknowledgeTimeout": 600,
            "servicePrefix": prefix,
            "clusterDeploymentSelector": selector
            if selector is not None
            else {"matchLabels": {"api.openshift.com/managed": "true"}},
            "pagerdutyApiKeySecretRef": {"name": "pagerduty-api-key", "namespace": OPERATOR_NS},
            "targetSecretRef": {"name": "pd-secret", "namespace": "openshift-monitoring"},
        }
        body_spec.update(spec)
        return {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_INTEGRATION,
            "metadata": {
                "name": name,
                "namespace": OPERATOR_NS,
                "generation": 1,
                "finalizers": list(finalizers or []),
            },
            "spec": body_spec,
        }

    return _make


@pytest.fixture
def make_cluster() -> Callable[..., dict[str, Any]]:
    """Factory for Hive ClusterDeployment objects."""

    def _make(
        name: str = "test-cluster",
        namespace: str = CLUSTER_NS,
        labels: dict[str, str] | None = None,
        installed: bool = True,
        finalizers: list[str] | None = None,
        base_domain: str = "example.com",
    ) -> dict[str, Any]:
        return {
            "apiVersion": HIVE_GROUP_VERSION,
            "kind": KIND_CLUSTER_DEPLOYMENT,
            "metadata": {
                "name": name,
                "namespace": namespace,
                "labels": labels if labels is not None else {"api.openshift.com/managed": "true"},
                "finalizers": list(finalizers or []),
            },
            "spec": {
                "clusterName": name,
                "baseDomain": base_domain,
                "installed": installed,
            },
        }

    return _make


@pytest.fixture
def api_key_secret() -> dict[str, Any]:
    """Secret holding the PagerDuty REST API key."""
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": "pagerduty-api-key", "namespace": OPERATOR_NS},
        "data": encode_secret_data({PAGERDUTY_API_SECRET_KEY: "api-token-0123456789"}),
    }


@pytest.fixture
def build_env(
    api_key_secret: dict[str, Any],
    pd_client: MagicMock,
) -> Callable[..., tuple[InMemoryResourceStore, Reconciler]]:
    """Build a store seeded with the API key secret plus the given objects, and a reconciler over it."""

    def _build(
        integrations: list[dict[str, Any]],
        clusters: list[dict[str, Any]],
        extra: list[tuple[str, dict[str, Any]]] | None = None,
    ) -> tuple[InMemoryResourceStore, Reconciler]:
        objects: list[tuple[str, dict[str, Any]]] = [(KIND_SECRET, api_key_secret)]
        objects += [(KIND_INTEGRATION, obj) for obj in integrations]
        objects += [(KIND_CLUSTER_DEPLOYMENT, obj) for obj in clusters]
        objects += extra or []
        store = InMemoryResourceStore(objects)
        return store, Reconciler(store, client_factory=lambda api_key: pd_client)

    return _build
