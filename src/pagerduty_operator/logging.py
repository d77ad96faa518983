"""Structured JSON logging for the PagerDuty Operator.

Every record leaves the process as one JSON object per line. Resource events
written through :func:`log_resource_event` carry the Kubernetes identity of the
object they concern; plain ``logger.info(...)`` calls from the reconciler are
wrapped by :class:`JsonFormatter` so they share the same shape and the
correlation id of the pass that produced them.
"""

import json
import logging
import sys
from typing import Any

from .utils.context import get_context_dict

# Log record attribute marking a message that is already a JSON document
_STRUCTURED = "structured"

SECRET_LOG_FIELDS = frozenset({"integration_key", "routing_key", "api_key", "pagerduty_key", "token", "password"})


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        if getattr(record, _STRUCTURED, False):
            return record.getMessage()
        payload = {
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(get_context_dict())
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def setup_structured_logging(level: int = logging.INFO) -> None:
    """Send JSON log lines to stdout."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    namespace: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured event about a Kubernetes resource.

    Extra keyword arguments become additional fields; known secret fields are
    redacted before the line is written.
    """
    fields = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "namespace": namespace,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
        **get_context_dict(),
        **sanitize_secrets(kwargs),
    }
    logger.log(level, json.dumps(fields, default=str), extra={_STRUCTURED: True})


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of log data with secret fields redacted."""
    return {
        key: "***REDACTED***" if key in SECRET_LOG_FIELDS else value
        for key, value in log_data.items()
    }
