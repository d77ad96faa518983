"""Per-pass logging context.

A reconcile pass runs inside :func:`with_correlation_id`; every log line written
during the pass, from the handler down to the PagerDuty client, picks up the
same correlation id (and any other fields bound to the pass).
"""

from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Any, Iterator

_pass_context: contextvars.ContextVar[dict[str, str]] = contextvars.ContextVar("pass_context", default={})


def get_correlation_id() -> str | None:
    return _pass_context.get().get("correlation_id")


@contextmanager
def with_correlation_id(corr_id: str | None = None, **fields: str) -> Iterator[str]:
    """Bind a correlation id, plus optional extra fields, for the duration of a block.

    Args:
        corr_id: Correlation id to use; a short random one is generated when omitted
        **fields: Additional fields to attach to every log line in the block

    Yields:
        The correlation id
    """
    corr_id = corr_id or uuid.uuid4().hex[:12]
    token = _pass_context.set({**_pass_context.get(), **fields, "correlation_id": corr_id})
    try:
        yield corr_id
    finally:
        _pass_context.reset(token)


def get_context_dict(additional: dict[str, Any] | None = None) -> dict[str, Any]:
    """Fields bound to the current pass, merged with ``additional``."""
    return {**_pass_context.get(), **(additional or {})}
