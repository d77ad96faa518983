"""Builders for the objects delivered to a managed cluster.

Everything here is pure: names are derived deterministically from the
integration's service prefix and the cluster name, and objects are returned as
dictionaries for the caller to persist.
"""

from __future__ import annotations

from typing import Any

from ..constants import (
    CONFIG_MAP_SUFFIX,
    HIVE_GROUP_VERSION,
    KIND_SYNC_SET,
    LABEL_INTEGRATION_NAME,
    LABEL_MANAGED_BY,
    LEGACY_SECRET_NAME,
    LEGACY_SYNC_SET_SUFFIX,
    MANAGED_BY_VALUE,
    PAGERDUTY_SECRET_KEY,
    SECRET_SUFFIX,
    SYNC_SET_APPLY_MODE,
)
from ..models import ClusterDeployment, IntegrationBinding, ServiceRecord
from ..services.pagerduty.base import ServiceConfig
from ..utils.secrets import encode_secret_data


def name(prefix: str, cluster_name: str, suffix: str) -> str:
    """Build a derived object name from a service prefix, cluster name and suffix."""
    return f"{prefix}-{cluster_name}{suffix}"


def secret_name(prefix: str, cluster_name: str) -> str:
    """Name of the Secret holding the integration key."""
    return name(prefix, cluster_name, SECRET_SUFFIX)


def sync_set_name(prefix: str, cluster_name: str) -> str:
    """Name of the SyncSet delivering the Secret; shares the Secret's name."""
    return name(prefix, cluster_name, SECRET_SUFFIX)


def config_map_name(prefix: str, cluster_name: str) -> str:
    """Name of the ConfigMap recording the PagerDuty service ID."""
    return name(prefix, cluster_name, CONFIG_MAP_SUFFIX)


def legacy_secret_name() -> str:
    return LEGACY_SECRET_NAME


def legacy_sync_set_name(cluster_name: str) -> str:
    return f"{cluster_name}{LEGACY_SYNC_SET_SUFFIX}"


def legacy_config_map_name(cluster_name: str) -> str:
    return f"{cluster_name}{CONFIG_MAP_SUFFIX}"


def service_name(binding: IntegrationBinding, cluster: ClusterDeployment) -> str:
    """Name of the PagerDuty service for a cluster."""
    base = f"{binding.service_prefix}-{cluster.cluster_name}"
    if cluster.base_domain:
        return f"{base}.{cluster.base_domain}"
    return base


def managed_labels(binding_name: str) -> dict[str, str]:
    return {
        LABEL_MANAGED_BY: MANAGED_BY_VALUE,
        LABEL_INTEGRATION_NAME: binding_name,
    }


def build_service_config(binding: IntegrationBinding, cluster: ClusterDeployment) -> ServiceConfig:
    """Create the PagerDuty service configuration for a cluster."""
    svc_name = service_name(binding, cluster)
    return ServiceConfig(
        name=svc_name,
        escalation_policy_id=binding.escalation_policy,
        resolve_timeout=binding.resolve_timeout,
        acknowledge_timeout=binding.acknowledge_timeout,
        description=f"Alerts for cluster {cluster.cluster_name} ({cluster.namespace}/{cluster.name})",
    )


def build_secret(
    namespace: str,
    secret_name: str,
    integration_key: str,
    binding_name: str | None = None,
) -> dict[str, Any]:
    """Build the Secret holding the PagerDuty integration key.

    Args:
        namespace: Namespace of the cluster deployment
        secret_name: Name of the secret
        integration_key: PagerDuty integration key
        binding_name: Name of the owning PagerDutyIntegration, used for labels

    Returns:
        Secret object
    """
    metadata: dict[str, Any] = {"name": secret_name, "namespace": namespace}
    if binding_name:
        metadata["labels"] = managed_labels(binding_name)
    return {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": metadata,
        "type": "Opaque",
        "data": encode_secret_data({PAGERDUTY_SECRET_KEY: integration_key}),
    }


def build_sync_set(
    namespace: str,
    cluster_name: str,
    secret: dict[str, Any],
    binding: IntegrationBinding,
) -> dict[str, Any]:
    """Build the SyncSet that copies the integration key Secret into the cluster.

    Args:
        namespace: Namespace of the cluster deployment
        cluster_name: Name of the ClusterDeployment the SyncSet applies to
        secret: Secret built by :func:`build_secret`
        binding: PagerDutyIntegration providing the target secret reference

    Returns:
        SyncSet object
    """
    source_name = secret["metadata"]["name"]
    return {
        "apiVersion": HIVE_GROUP_VERSION,
        "kind": KIND_SYNC_SET,
        "metadata": {
            "name": sync_set_name(binding.service_prefix, cluster_name),
            "namespace": namespace,
            "labels": managed_labels(binding.name),
        },
        "spec": {
            "clusterDeploymentRefs": [{"name": cluster_name}],
            "resourceApplyMode": SYNC_SET_APPLY_MODE,
            "secretMappings": [
                {
                    "sourceRef": {"name": source_name, "namespace": namespace},
                    "targetRef": binding.target_secret_ref.to_dict(),
                }
            ],
        },
    }


def build_config_map(
    namespace: str,
    config_map_name: str,
    record: ServiceRecord,
    binding_name: str | None = None,
) -> dict[str, Any]:
    """Build the ConfigMap recording the provisioned PagerDuty service."""
    metadata: dict[str, Any] = {"name": config_map_name, "namespace": namespace}
    if binding_name:
        metadata["labels"] = managed_labels(binding_name)
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": metadata,
        "data": record.to_config_data(),
    }
