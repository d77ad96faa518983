"""Kubernetes-backed resource store."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

from kubernetes import client
from kubernetes.client.exceptions import ApiException

from ... import metrics
from ...constants import (
    FIELD_MANAGER,
    HIVE_GROUP,
    HIVE_VERSION,
    API_GROUP,
    API_VERSION,
    KIND_CLUSTER_DEPLOYMENT,
    KIND_CONFIG_MAP,
    KIND_INTEGRATION,
    KIND_SECRET,
    KIND_SYNC_SET,
    PLURAL_CLUSTER_DEPLOYMENTS,
    PLURAL_INTEGRATIONS,
    PLURAL_SYNC_SETS,
)
from ...utils.rate_limit import rate_limit_k8s
from .base import ConflictError, NotFoundError

logger = logging.getLogger(__name__)

# kind -> (group, version, plural) for custom resources
_CUSTOM_KINDS: dict[str, tuple[str, str, str]] = {
    KIND_INTEGRATION: (API_GROUP, API_VERSION, PLURAL_INTEGRATIONS),
    KIND_CLUSTER_DEPLOYMENT: (HIVE_GROUP, HIVE_VERSION, PLURAL_CLUSTER_DEPLOYMENTS),
    KIND_SYNC_SET: (HIVE_GROUP, HIVE_VERSION, PLURAL_SYNC_SETS),
}

# kind -> CoreV1Api method suffix
_CORE_KINDS: dict[str, str] = {
    KIND_SECRET: "secret",
    KIND_CONFIG_MAP: "config_map",
}


def get_k8s_apis() -> tuple[client.CoreV1Api, client.CustomObjectsApi]:
    """Load cluster credentials and return the core and custom object APIs."""
    from kubernetes import config

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()

    return client.CoreV1Api(), client.CustomObjectsApi()


class KubernetesResourceStore:
    """ResourceStore implementation talking to the Kubernetes API server.

    Core kinds (Secret, ConfigMap) go through ``CoreV1Api`` and are converted to
    plain dictionaries; custom kinds go through ``CustomObjectsApi``. HTTP 404
    and 409 responses are translated to :class:`NotFoundError` and
    :class:`ConflictError`; anything else propagates unchanged.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api | None = None,
        custom_api: client.CustomObjectsApi | None = None,
    ) -> None:
        if core_api is None or custom_api is None:
            default_core, default_custom = get_k8s_apis()
            core_api = core_api or default_core
            custom_api = custom_api or default_custom
        self.core_api = core_api
        self.custom_api = custom_api

    def _call(
        self,
        operation: str,
        kind: str,
        namespace: str | None,
        name: str,
        fn: Callable[..., Any],
        /,
        **kwargs: Any,
    ) -> Any:
        start_time = time.time()
        try:
            result = rate_limit_k8s(fn)(**kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except ApiException as e:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            if e.status == 404:
                raise NotFoundError(kind, namespace, name) from e
            if e.status == 409:
                raise ConflictError(kind, namespace, name, e.reason or "conflict") from e
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)

    def _to_dict(self, obj: Any) -> dict[str, Any]:
        if isinstance(obj, dict):
            return obj
        return self.core_api.api_client.sanitize_for_serialization(obj)

    def _require_kind(self, kind: str) -> None:
        if kind not in _CUSTOM_KINDS and kind not in _CORE_KINDS:
            raise ValueError(f"Unsupported kind: {kind}")

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        self._require_kind(kind)
        if kind in _CORE_KINDS:
            fn = getattr(self.core_api, f"read_namespaced_{_CORE_KINDS[kind]}")
            obj = self._call(f"get_{kind.lower()}", kind, namespace, name, fn, name=name, namespace=namespace)
            return self._to_dict(obj)

        group, version, plural = _CUSTOM_KINDS[kind]
        return self._call(
            f"get_{kind.lower()}",
            kind,
            namespace,
            name,
            self.custom_api.get_namespaced_custom_object,
            group=group,
            version=version,
            namespace=namespace,
            plural=plural,
            name=name,
        )

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        self._require_kind(kind)
        kwargs: dict[str, Any] = {}
        if label_selector:
            kwargs["label_selector"] = label_selector
        operation = f"list_{kind.lower()}"

        if kind in _CORE_KINDS:
            suffix = _CORE_KINDS[kind]
            if namespace is None:
                fn = getattr(self.core_api, f"list_{suffix}_for_all_namespaces")
            else:
                fn = getattr(self.core_api, f"list_namespaced_{suffix}")
                kwargs["namespace"] = namespace
            result = self._call(operation, kind, namespace, "*", fn, **kwargs)
            return [self._to_dict(item) for item in result.items]

        group, version, plural = _CUSTOM_KINDS[kind]
        if namespace is None:
            result = self._call(
                operation, kind, namespace, "*",
                self.custom_api.list_cluster_custom_object,
                group=group, version=version, plural=plural, **kwargs,
            )
        else:
            result = self._call(
                operation, kind, namespace, "*",
                self.custom_api.list_namespaced_custom_object,
                group=group, version=version, namespace=namespace, plural=plural, **kwargs,
            )
        return list(result.get("items", []))

    def create(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        self._require_kind(kind)
        meta = obj.get("metadata", {})
        namespace, name = meta.get("namespace"), meta.get("name", "")
        operation = f"create_{kind.lower()}"

        if kind in _CORE_KINDS:
            fn = getattr(self.core_api, f"create_namespaced_{_CORE_KINDS[kind]}")
            created = self._call(
                operation, kind, namespace, name, fn,
                namespace=namespace, body=obj, field_manager=FIELD_MANAGER,
            )
            return self._to_dict(created)

        group, version, plural = _CUSTOM_KINDS[kind]
        return self._call(
            operation, kind, namespace, name,
            self.custom_api.create_namespaced_custom_object,
            group=group, version=version, namespace=namespace, plural=plural,
            body=obj, field_manager=FIELD_MANAGER,
        )

    def update(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        self._require_kind(kind)
        meta = obj.get("metadata", {})
        namespace, name = meta.get("namespace"), meta.get("name", "")
        operation = f"update_{kind.lower()}"

        # replace (PUT) carries metadata.resourceVersion, so a stale body is rejected with 409
        if kind in _CORE_KINDS:
            fn = getattr(self.core_api, f"replace_namespaced_{_CORE_KINDS[kind]}")
            updated = self._call(
                operation, kind, namespace, name, fn,
                name=name, namespace=namespace, body=obj, field_manager=FIELD_MANAGER,
            )
            return self._to_dict(updated)

        group, version, plural = _CUSTOM_KINDS[kind]
        return self._call(
            operation, kind, namespace, name,
            self.custom_api.replace_namespaced_custom_object,
            group=group, version=version, namespace=namespace, plural=plural,
            name=name, body=obj, field_manager=FIELD_MANAGER,
        )

    def delete(self, kind: str, namespace: str, name: str) -> None:
        self._require_kind(kind)
        operation = f"delete_{kind.lower()}"

        if kind in _CORE_KINDS:
            fn = getattr(self.core_api, f"delete_namespaced_{_CORE_KINDS[kind]}")
            self._call(operation, kind, namespace, name, fn, name=name, namespace=namespace)
            return

        group, version, plural = _CUSTOM_KINDS[kind]
        self._call(
            operation, kind, namespace, name,
            self.custom_api.delete_namespaced_custom_object,
            group=group, version=version, namespace=namespace, plural=plural, name=name,
        )
