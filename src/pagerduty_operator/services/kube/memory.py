"""In-memory resource store with Kubernetes-like write semantics."""

from __future__ import annotations

import copy
import threading
from datetime import datetime, timezone
from typing import Any

from .base import ConflictError, NotFoundError


def _parse_equality_selector(label_selector: str) -> list[tuple[str, str, str | None]]:
    """Parse an equality-based label selector (``a=b,c!=d,e,!f``)."""
    requirements: list[tuple[str, str, str | None]] = []
    for term in label_selector.split(","):
        term = term.strip()
        if not term:
            continue
        if "!=" in term:
            key, value = term.split("!=", 1)
            requirements.append((key.strip(), "!=", value.strip()))
        elif "==" in term:
            key, value = term.split("==", 1)
            requirements.append((key.strip(), "=", value.strip()))
        elif "=" in term:
            key, value = term.split("=", 1)
            requirements.append((key.strip(), "=", value.strip()))
        elif term.startswith("!"):
            requirements.append((term[1:].strip(), "!", None))
        else:
            requirements.append((term, "exists", None))
    return requirements


def _labels_match(labels: dict[str, str], requirements: list[tuple[str, str, str | None]]) -> bool:
    for key, op, value in requirements:
        if op == "=" and labels.get(key) != value:
            return False
        if op == "!=" and labels.get(key) == value:
            return False
        if op == "!" and key in labels:
            return False
        if op == "exists" and key not in labels:
            return False
    return True


class InMemoryResourceStore:
    """Dictionary-backed implementation of the ResourceStore protocol.

    Mirrors the API server behaviours the reconciler relies on:

    * every write bumps ``metadata.resourceVersion`` and ``update`` rejects
      stale versions with :class:`ConflictError`;
    * deleting an object that still has finalizers only stamps
      ``metadata.deletionTimestamp``;
    * an object marked for deletion disappears once its last finalizer is
      removed by an ``update``.

    Objects are deep-copied on the way in and out so callers never share state
    with the store.
    """

    def __init__(self, objects: list[tuple[str, dict[str, Any]]] | None = None) -> None:
        self._objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self._version = 0
        self._lock = threading.Lock()
        self.writes: list[tuple[str, str, str, str]] = []
        for kind, obj in objects or []:
            self._put(kind, copy.deepcopy(obj))

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def _key(self, kind: str, obj: dict[str, Any]) -> tuple[str, str, str]:
        meta = obj.get("metadata", {})
        return (kind, meta.get("namespace", ""), meta["name"])

    def _put(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        obj.setdefault("metadata", {})["resourceVersion"] = self._next_version()
        self._objects[self._key(kind, obj)] = obj
        return copy.deepcopy(obj)

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        with self._lock:
            obj = self._objects.get((kind, namespace, name))
            if obj is None:
                raise NotFoundError(kind, namespace, name)
            return copy.deepcopy(obj)

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        requirements = _parse_equality_selector(label_selector) if label_selector else []
        with self._lock:
            result = []
            for (obj_kind, obj_ns, _), obj in sorted(self._objects.items()):
                if obj_kind != kind:
                    continue
                if namespace is not None and obj_ns != namespace:
                    continue
                if not _labels_match(obj.get("metadata", {}).get("labels") or {}, requirements):
                    continue
                result.append(copy.deepcopy(obj))
            return result

    def create(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        obj = copy.deepcopy(obj)
        key = self._key(kind, obj)
        with self._lock:
            if key in self._objects:
                raise ConflictError(kind, key[1], key[2], "already exists")
            self.writes.append(("create", kind, key[1], key[2]))
            return self._put(kind, obj)

    def update(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        obj = copy.deepcopy(obj)
        key = self._key(kind, obj)
        with self._lock:
            current = self._objects.get(key)
            if current is None:
                raise NotFoundError(kind, key[1], key[2])
            expected = obj.get("metadata", {}).get("resourceVersion")
            if expected is not None and expected != current["metadata"]["resourceVersion"]:
                raise ConflictError(kind, key[1], key[2], "object has been modified")
            self.writes.append(("update", kind, key[1], key[2]))
            # deletionTimestamp is owned by the server
            deletion_timestamp = current["metadata"].get("deletionTimestamp")
            if deletion_timestamp:
                obj["metadata"]["deletionTimestamp"] = deletion_timestamp
                if not obj["metadata"].get("finalizers"):
                    del self._objects[key]
                    return copy.deepcopy(obj)
            return self._put(kind, obj)

    def delete(self, kind: str, namespace: str, name: str) -> None:
        key = (kind, namespace, name)
        with self._lock:
            current = self._objects.get(key)
            if current is None:
                raise NotFoundError(kind, namespace, name)
            self.writes.append(("delete", kind, namespace, name))
            if current["metadata"].get("finalizers"):
                if not current["metadata"].get("deletionTimestamp"):
                    current["metadata"]["deletionTimestamp"] = (
                        datetime.now(timezone.utc).replace(microsecond=0).isoformat()
                    )
                    current["metadata"]["resourceVersion"] = self._next_version()
                return
            del self._objects[key]
