"""PagerDuty REST API client implementation."""

from __future__ import annotations

import logging
import os
import time
from typing import Any

import httpx
import pagerduty
from pagerduty import RestApiV2Client

from ... import metrics
from ...utils.rate_limit import rate_limit_pagerduty
from .base import PagerDutyError, PagerDutyTransientError, ServiceConfig, ServiceNotFoundError

logger = logging.getLogger(__name__)

EVENTS_V2_INTEGRATION_TYPE = "events_api_v2_inbound_integration"
INTEGRATION_NAME = "Cluster Alerts"


def _timeout_or_none(seconds: int) -> int | None:
    # PagerDuty disables a timeout when it is null rather than zero
    return seconds if seconds > 0 else None


class PagerDutyRestClient:
    """PagerDuty client built on the official PagerDuty SDK.

    Implements the :class:`~pagerduty_operator.services.pagerduty.base.PagerDutyClient`
    protocol. HTTP status codes are translated into the operator's error
    hierarchy; nothing is retried here.
    """

    def __init__(
        self,
        api_key: str,
        default_from: str | None = None,
    ) -> None:
        """Initialize the PagerDuty client.

        Args:
            api_key: PagerDuty REST API v2 token
            default_from: Email for the ``From`` header required by some write operations
        """
        self.default_from = default_from or os.getenv("PAGERDUTY_FROM_EMAIL")
        self.client = RestApiV2Client(api_key, default_from=self.default_from)

    def close(self) -> None:
        """Close the underlying SDK session."""
        self.client.close()

    def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> Any:
        start_time = time.time()
        try:
            response = rate_limit_pagerduty(getattr(self.client, method))(path, **kwargs)
        except (pagerduty.HttpError, pagerduty.ServerHttpError, httpx.HTTPError) as e:
            metrics.api_call_total.labels(api_type="pagerduty", operation=operation, result="error").inc()
            status = getattr(getattr(e, "response", None), "status_code", None)
            if status == 404:
                raise ServiceNotFoundError(f"{operation}: {path} not found") from e
            if status is None or status == 429 or status >= 500:
                raise PagerDutyTransientError(f"{operation} failed: {e}") from e
            raise PagerDutyError(f"{operation} failed: {e}") from e
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="pagerduty", operation=operation).observe(duration)

        status = response.status_code
        if status == 404:
            metrics.api_call_total.labels(api_type="pagerduty", operation=operation, result="not_found").inc()
            raise ServiceNotFoundError(f"{operation}: {path} not found")
        if status == 429 or status >= 500:
            metrics.api_call_total.labels(api_type="pagerduty", operation=operation, result="error").inc()
            raise PagerDutyTransientError(f"{operation} failed with HTTP {status}")
        if status >= 400:
            metrics.api_call_total.labels(api_type="pagerduty", operation=operation, result="error").inc()
            raise PagerDutyError(f"{operation} failed with HTTP {status}: {response.text}")

        metrics.api_call_total.labels(api_type="pagerduty", operation=operation, result="success").inc()
        if status == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise PagerDutyError(f"{operation}: response did not contain JSON") from e

    def create_service(self, config: ServiceConfig) -> str:
        """Create a service and its Events API v2 integration."""
        service_payload = {
            "service": {
                "type": "service",
                "name": config.name,
                "description": config.description or config.name,
                "escalation_policy": {
                    "id": config.escalation_policy_id,
                    "type": "escalation_policy_reference",
                },
                "auto_resolve_timeout": _timeout_or_none(config.resolve_timeout),
                "acknowledgement_timeout": _timeout_or_none(config.acknowledge_timeout),
                "alert_creation": "create_alerts_and_incidents",
            }
        }
        data = self._request("post", "/services", "create_service", json=service_payload)
        service_id = data["service"]["id"]
        logger.info(f"Created PagerDuty service {config.name} with ID {service_id}")

        integration_payload = {
            "integration": {
                "type": EVENTS_V2_INTEGRATION_TYPE,
                "name": INTEGRATION_NAME,
            }
        }
        try:
            self._request(
                "post",
                f"/services/{service_id}/integrations",
                "create_integration",
                json=integration_payload,
            )
        except PagerDutyError:
            # Nothing records the service yet, so do not leave it behind
            logger.warning(f"Failed to add integration to service {service_id}, removing service")
            try:
                self.delete_service(service_id)
            except PagerDutyError as cleanup_error:
                logger.error(f"Failed to remove service {service_id}: {cleanup_error}")
            raise

        return service_id

    def get_integration_key(self, service_id: str) -> str:
        """Return the integration key of the service's Events API v2 integration."""
        data = self._request(
            "get",
            f"/services/{service_id}",
            "get_service",
            params={"include[]": "integrations"},
        )
        integrations = data.get("service", {}).get("integrations", [])
        for integration in integrations:
            if integration.get("type") != EVENTS_V2_INTEGRATION_TYPE:
                continue
            key = integration.get("integration_key")
            if key:
                return key
            detail = self._request(
                "get",
                f"/services/{service_id}/integrations/{integration['id']}",
                "get_integration",
            )
            key = detail.get("integration", {}).get("integration_key")
            if key:
                return key

        raise PagerDutyError(f"Service {service_id} has no events integration")

    def delete_service(self, service_id: str) -> None:
        """Delete a service."""
        self._request("delete", f"/services/{service_id}", "delete_service")
        logger.info(f"Deleted PagerDuty service {service_id}")
