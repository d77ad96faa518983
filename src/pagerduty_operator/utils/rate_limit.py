"""Rate limiting utilities for API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from .. import metrics

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))
_PAGERDUTY_RATE_LIMIT_PER_SECOND = float(os.getenv("PAGERDUTY_RATE_LIMIT_PER_SECOND", "5.0"))


class _Pacer:
    """Enforces a minimum interval between calls sharing the same budget."""

    def __init__(self, api_type: str, per_second: float) -> None:
        self.api_type = api_type
        self.min_interval = 1.0 / per_second if per_second > 0 else 0.0
        self.last_call_time = 0.0
        self._lock = threading.Lock()

    def wait(self) -> None:
        with self._lock:
            current_time = time.time()
            time_since_last_call = current_time - self.last_call_time
            if time_since_last_call < self.min_interval:
                metrics.rate_limit_hits_total.labels(api_type=self.api_type).inc()
                time.sleep(self.min_interval - time_since_last_call)
            self.last_call_time = time.time()


_k8s_pacer = _Pacer("k8s", _K8S_RATE_LIMIT_PER_SECOND)
_pagerduty_pacer = _Pacer("pagerduty", _PAGERDUTY_RATE_LIMIT_PER_SECOND)


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls.

    Spaces calls out to at most ``K8S_RATE_LIMIT_PER_SECOND`` to avoid
    overwhelming the Kubernetes API server.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _k8s_pacer.wait()
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def rate_limit_pagerduty(func: _F) -> _F:
    """Decorator to rate limit PagerDuty REST API calls.

    Failed calls are never retried here; a rejected call surfaces to the
    caller and the whole reconcile pass is redelivered later.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        _pagerduty_pacer.wait()
        return func(*args, **kwargs)

    return wrapper  # type: ignore
