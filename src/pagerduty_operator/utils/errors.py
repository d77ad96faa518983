"""Redaction of PagerDuty credentials from error messages and log data.

Integration (routing) keys and REST API tokens must never reach events,
status conditions or logs. PagerDuty SDK errors can echo request headers, so
``Authorization`` values are scrubbed as well.
"""

import re
from typing import Any

REDACTED = "[REDACTED]"

SENSITIVE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"token[=:\s]+([A-Za-z0-9_\-+=]{8,})",
        r"integration[_\s]?key[:\s]+([A-Za-z0-9]{16,})",
        r"routing[_\s]?key[:\s]+([A-Za-z0-9]{16,})",
        r"api[_\s]?key[:\s]+([A-Za-z0-9_\-+=]{8,})",
        r"authorization[:\s]+([^\s,;]+(?:\s+[^\s,;]+)?)",
    )
]

# Dictionary keys whose values are always redacted (substring match)
SENSITIVE_FIELDS = frozenset({
    "integration_key",
    "routing_key",
    "api_key",
    "pagerduty_key",
    "password",
    "secret",
    "token",
})


def _redact_group(match: "re.Match[str]") -> str:
    return match.group(0).replace(match.group(1), REDACTED)


def sanitize_error_message(message: str) -> str:
    """Redact credentials embedded in a message."""
    for pattern in SENSITIVE_PATTERNS:
        message = pattern.sub(_redact_group, message)
    return message


def sanitize_exception(error: Exception) -> str:
    """Sanitized ``str(error)``, safe for events and status."""
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive values redacted.

    Args:
        data: Dictionary to sanitize; nested dictionaries and lists are walked
        sensitive_keys: Extra key fragments to treat as sensitive
    """
    fragments = SENSITIVE_FIELDS | (sensitive_keys or set())

    def _clean(value: Any) -> Any:
        if isinstance(value, dict):
            return {
                k: REDACTED if any(f in k.lower() for f in fragments) else _clean(v)
                for k, v in value.items()
            }
        if isinstance(value, list):
            return [_clean(v) for v in value]
        if isinstance(value, str):
            return sanitize_error_message(value)
        return value

    return _clean(data)
