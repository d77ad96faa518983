"""Base resource store interface."""

from __future__ import annotations

from typing import Any, Protocol


class StoreError(Exception):
    """Base class for resource store errors."""

    def __init__(self, kind: str, namespace: str | None, name: str, message: str = "") -> None:
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(message or f"{kind} {namespace}/{name}")


class NotFoundError(StoreError):
    """Raised when an object does not exist."""

    def __init__(self, kind: str, namespace: str | None, name: str) -> None:
        super().__init__(kind, namespace, name, f"{kind} {namespace}/{name} not found")


class ConflictError(StoreError):
    """Raised on a stale write or when creating an object that already exists."""

    def __init__(self, kind: str, namespace: str | None, name: str, reason: str = "conflict") -> None:
        super().__init__(kind, namespace, name, f"{kind} {namespace}/{name}: {reason}")


class ResourceStore(Protocol):
    """Protocol defining the object store operations used by the reconciler.

    Objects are plain Kubernetes-style dictionaries (``apiVersion``, ``kind``,
    ``metadata``, ...). Writes use optimistic concurrency: ``update`` must carry
    the ``metadata.resourceVersion`` that was read and fails with
    :class:`ConflictError` if the stored object changed since.
    """

    def get(self, kind: str, namespace: str, name: str) -> dict[str, Any]:
        """Get an object, raising NotFoundError if absent."""
        ...

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """List objects of a kind, optionally limited to a namespace and selector."""
        ...

    def create(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        """Create an object, raising ConflictError if it already exists."""
        ...

    def update(self, kind: str, obj: dict[str, Any]) -> dict[str, Any]:
        """Replace an object, raising ConflictError on a stale resourceVersion."""
        ...

    def delete(self, kind: str, namespace: str, name: str) -> None:
        """Delete an object, raising NotFoundError if absent."""
        ...
