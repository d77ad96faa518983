"""Resource store implementations."""

from .base import ConflictError, NotFoundError, ResourceStore, StoreError
from .memory import InMemoryResourceStore
from .store import KubernetesResourceStore

__all__ = [
    "ConflictError",
    "InMemoryResourceStore",
    "KubernetesResourceStore",
    "NotFoundError",
    "ResourceStore",
    "StoreError",
]
