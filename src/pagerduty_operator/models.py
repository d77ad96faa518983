"""Typed views over the Kubernetes objects the operator reads."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .constants import (
    CONFIG_ACKNOWLEDGE_TIMEOUT,
    CONFIG_ESCALATION_POLICY_ID,
    CONFIG_RESOLVE_TIMEOUT,
    CONFIG_SERVICE_ID,
    CONFIG_SERVICE_NAME,
    FINALIZER_PREFIX,
    LEGACY_FINALIZER,
    LEGACY_SECRET_NAME,
    OPERATOR_NAMESPACE,
)


class BindingConfigError(ValueError):
    """Raised when a PagerDutyIntegration cannot be acted upon as configured."""


@dataclass(frozen=True)
class SecretReference:
    """Reference to a Secret by namespace and name."""

    name: str
    namespace: str

    @classmethod
    def from_spec(cls, ref: dict[str, Any] | None, default_namespace: str) -> "SecretReference | None":
        ref = ref or {}
        if not ref.get("name"):
            return None
        return cls(name=ref["name"], namespace=ref.get("namespace") or default_namespace)

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "namespace": self.namespace}


@dataclass
class IntegrationBinding:
    """A PagerDutyIntegration: desired PagerDuty configuration for a class of clusters."""

    name: str
    namespace: str
    escalation_policy: str
    resolve_timeout: int
    acknowledge_timeout: int
    service_prefix: str
    cluster_selector: dict[str, Any]
    api_key_secret_ref: SecretReference
    target_secret_ref: SecretReference
    finalizers: list[str] = field(default_factory=list)
    deleting: bool = False
    generation: int = 0

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> "IntegrationBinding":
        """Build a binding from a PagerDutyIntegration object.

        Raises:
            BindingConfigError: If a required field is missing or malformed
        """
        meta = obj.get("metadata", {})
        spec = obj.get("spec") or {}
        name = meta.get("name", "")
        namespace = meta.get("namespace") or OPERATOR_NAMESPACE

        # The per-integration cluster finalizer must never collide with the legacy one
        if f"{FINALIZER_PREFIX}{name}" == LEGACY_FINALIZER:
            raise BindingConfigError(f"metadata.name {name!r} is reserved")

        escalation_policy = spec.get("escalationPolicy")
        if not escalation_policy:
            raise BindingConfigError("spec.escalationPolicy is required")

        service_prefix = spec.get("servicePrefix")
        if not service_prefix:
            raise BindingConfigError("spec.servicePrefix is required")

        api_key_ref = SecretReference.from_spec(spec.get("pagerdutyApiKeySecretRef"), namespace)
        if api_key_ref is None:
            raise BindingConfigError("spec.pagerdutyApiKeySecretRef.name is required")

        target_ref = SecretReference.from_spec(spec.get("targetSecretRef"), "openshift-monitoring")
        if target_ref is None:
            target_ref = SecretReference(name=LEGACY_SECRET_NAME, namespace="openshift-monitoring")

        try:
            resolve_timeout = int(spec.get("resolveTimeout") or 0)
            acknowledge_timeout = int(spec.get("acknowledgeTimeout") or 0)
        except (TypeError, ValueError) as e:
            raise BindingConfigError(f"invalid timeout: {e}") from e

        return cls(
            name=name,
            namespace=namespace,
            escalation_policy=escalation_policy,
            resolve_timeout=resolve_timeout,
            acknowledge_timeout=acknowledge_timeout,
            service_prefix=service_prefix,
            cluster_selector=spec.get("clusterDeploymentSelector") or {},
            api_key_secret_ref=api_key_ref,
            target_secret_ref=target_ref,
            finalizers=list(meta.get("finalizers") or []),
            deleting=bool(meta.get("deletionTimestamp")),
            generation=meta.get("generation", 0),
        )


@dataclass
class ClusterDeployment:
    """A Hive ClusterDeployment, reduced to the fields the operator reads."""

    name: str
    namespace: str
    cluster_name: str
    labels: dict[str, str]
    installed: bool
    deleting: bool
    finalizers: list[str]
    base_domain: str | None = None

    @classmethod
    def from_object(cls, obj: dict[str, Any]) -> "ClusterDeployment":
        meta = obj.get("metadata", {})
        spec = obj.get("spec") or {}
        return cls(
            name=meta.get("name", ""),
            namespace=meta.get("namespace", ""),
            cluster_name=spec.get("clusterName") or meta.get("name", ""),
            labels=dict(meta.get("labels") or {}),
            installed=bool(spec.get("installed", False)),
            deleting=bool(meta.get("deletionTimestamp")),
            finalizers=list(meta.get("finalizers") or []),
            base_domain=spec.get("baseDomain"),
        )


@dataclass
class ServiceRecord:
    """What the operator persists about a provisioned PagerDuty service."""

    service_id: str
    service_name: str = ""
    escalation_policy_id: str = ""
    resolve_timeout: int = 0
    acknowledge_timeout: int = 0

    @classmethod
    def from_config_data(cls, data: dict[str, str] | None) -> "ServiceRecord | None":
        """Parse ConfigMap data; returns None when no service ID is recorded."""
        data = data or {}
        service_id = data.get(CONFIG_SERVICE_ID)
        if not service_id:
            return None

        def _int(key: str) -> int:
            try:
                return int(data.get(key) or 0)
            except ValueError:
                return 0

        return cls(
            service_id=service_id,
            service_name=data.get(CONFIG_SERVICE_NAME, ""),
            escalation_policy_id=data.get(CONFIG_ESCALATION_POLICY_ID, ""),
            resolve_timeout=_int(CONFIG_RESOLVE_TIMEOUT),
            acknowledge_timeout=_int(CONFIG_ACKNOWLEDGE_TIMEOUT),
        )

    def to_config_data(self) -> dict[str, str]:
        return {
            CONFIG_SERVICE_ID: self.service_id,
            CONFIG_SERVICE_NAME: self.service_name,
            CONFIG_ESCALATION_POLICY_ID: self.escalation_policy_id,
            CONFIG_RESOLVE_TIMEOUT: str(self.resolve_timeout),
            CONFIG_ACKNOWLEDGE_TIMEOUT: str(self.acknowledge_timeout),
        }
