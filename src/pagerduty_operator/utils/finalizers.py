"""Helpers for the finalizers the operator places on objects."""

from __future__ import annotations

from typing import Any

from ..constants import FINALIZER_PREFIX


def finalizer_for(binding_name: str) -> str:
    """Finalizer naming an integration, e.g. ``pd.managed.openshift.io/<name>``."""
    return f"{FINALIZER_PREFIX}{binding_name}"


def has_finalizer(obj: dict[str, Any], finalizer: str) -> bool:
    return finalizer in (obj.get("metadata", {}).get("finalizers") or [])


def add_finalizer(obj: dict[str, Any], finalizer: str) -> bool:
    """Add a finalizer to an object in place.

    Returns:
        True if the object changed
    """
    meta = obj.setdefault("metadata", {})
    finalizers = list(meta.get("finalizers") or [])
    if finalizer in finalizers:
        return False
    finalizers.append(finalizer)
    meta["finalizers"] = finalizers
    return True


def remove_finalizers(obj: dict[str, Any], *finalizers: str) -> bool:
    """Remove finalizers from an object in place.

    Returns:
        True if the object changed
    """
    meta = obj.setdefault("metadata", {})
    current = list(meta.get("finalizers") or [])
    remaining = [f for f in current if f not in finalizers]
    if remaining == current:
        return False
    meta["finalizers"] = remaining
    return True
