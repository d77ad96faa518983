"""Builder for PagerDuty client instances."""

from __future__ import annotations

from typing import Any

from ..constants import KIND_SECRET, PAGERDUTY_API_SECRET_KEY
from ..models import BindingConfigError, IntegrationBinding
from ..services.kube.base import NotFoundError, ResourceStore
from ..services.pagerduty.base import PagerDutyClient
from ..services.pagerduty.client import PagerDutyRestClient
from ..utils.secrets import get_secret_value


def create_pagerduty_client(api_key: str) -> PagerDutyClient:
    """Create a PagerDuty client for an API key."""
    return PagerDutyRestClient(api_key)


def resolve_api_key(store: ResourceStore, binding: IntegrationBinding) -> str:
    """Read the PagerDuty API key referenced by a binding.

    Args:
        store: Resource store
        binding: PagerDutyIntegration referencing the API key secret

    Returns:
        PagerDuty API key

    Raises:
        BindingConfigError: If the secret or its key is missing
    """
    ref = binding.api_key_secret_ref
    try:
        secret: dict[str, Any] = store.get(KIND_SECRET, ref.namespace, ref.name)
    except NotFoundError as e:
        raise BindingConfigError(
            f"PagerDuty API key secret {ref.namespace}/{ref.name} not found"
        ) from e

    try:
        api_key = get_secret_value(secret, PAGERDUTY_API_SECRET_KEY)
    except ValueError as e:
        raise BindingConfigError(str(e)) from e
    if not api_key:
        raise BindingConfigError(f"PagerDuty API key in secret {ref.namespace}/{ref.name} is empty")
    return api_key
