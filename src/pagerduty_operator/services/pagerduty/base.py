"""Base PagerDuty client interface."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class PagerDutyError(Exception):
    """Raised when the PagerDuty API rejects a request."""


class PagerDutyTransientError(PagerDutyError):
    """Raised on throttling, server or transport errors; safe to retry later."""


class ServiceNotFoundError(PagerDutyError):
    """Raised when the referenced PagerDuty service does not exist."""


@dataclass(frozen=True)
class ServiceConfig:
    """Configuration for creating a PagerDuty service."""

    name: str
    escalation_policy_id: str
    resolve_timeout: int
    acknowledge_timeout: int
    description: str = ""


class PagerDutyClient(Protocol):
    """Protocol defining the PagerDuty operations used by the reconciler."""

    def create_service(self, config: ServiceConfig) -> str:
        """Create a service with an events integration and return its ID."""
        ...

    def get_integration_key(self, service_id: str) -> str:
        """Return the integration (routing) key of the service's events integration."""
        ...

    def delete_service(self, service_id: str) -> None:
        """Delete a service, raising ServiceNotFoundError if it is already gone."""
        ...
