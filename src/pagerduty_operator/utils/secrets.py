"""Utilities for reading and writing Kubernetes secret data."""

from __future__ import annotations

import base64
import binascii
from typing import Any


def encode_secret_data(data: dict[str, str]) -> dict[str, str]:
    """Base64-encode secret values for the ``data`` field of a Secret.

    Args:
        data: Plain-text secret values

    Returns:
        Dictionary with base64-encoded values
    """
    return {k: base64.b64encode(v.encode("utf-8")).decode("utf-8") for k, v in data.items()}


def get_secret_value(secret: dict[str, Any], key: str) -> str:
    """Get a decoded value from a Secret object.

    Args:
        secret: Secret object as a dictionary
        key: Key in the secret

    Returns:
        Secret value

    Raises:
        ValueError: If the key is not present or cannot be decoded
    """
    name = secret.get("metadata", {}).get("name", "unknown")

    string_data = secret.get("stringData") or {}
    if key in string_data:
        return string_data[key]

    data = secret.get("data") or {}
    if key not in data:
        raise ValueError(f"Key '{key}' not found in secret '{name}'")

    value = data[key]
    if isinstance(value, bytes):
        return value.decode("utf-8")
    try:
        return base64.b64decode(value, validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"Key '{key}' in secret '{name}' is not valid base64") from e


def find_secret_value(secret: dict[str, Any] | None, key: str) -> str | None:
    """Like get_secret_value, but returns None for a missing secret, key or bad encoding."""
    if secret is None:
        return None
    try:
        return get_secret_value(secret, key) or None
    except ValueError:
        return None
