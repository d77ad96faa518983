"""PagerDuty service clients."""

from .base import (
    PagerDutyClient,
    PagerDutyError,
    PagerDutyTransientError,
    ServiceConfig,
    ServiceNotFoundError,
)
from .client import PagerDutyRestClient

__all__ = [
    "PagerDutyClient",
    "PagerDutyError",
    "PagerDutyRestClient",
    "PagerDutyTransientError",
    "ServiceConfig",
    "ServiceNotFoundError",
]
