"""Main entry point for the PagerDuty Operator."""

from __future__ import annotations

import logging
import os
from typing import Any

import kopf

from . import health
from . import logging as structured_logging
from . import handlers  # noqa: F401  (registers the kopf handlers)
from .tracing import initialize_tracing

logger = logging.getLogger(__name__)


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure the operator."""
    structured_logging.setup_structured_logging(
        getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    )
    initialize_tracing()

    # Annotations keep kopf's bookkeeping out of the status we own
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage()
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage()

    settings.posting.level = logging.INFO
    settings.networking.request_timeout = 30.0
    settings.execution.max_workers = 4

    metrics_port = int(os.getenv("METRICS_PORT", "8080"))
    health.start_health_server(metrics_port)
    health.mark_ready()
    logger.info(f"Metrics and health endpoints listening on :{metrics_port}")


@kopf.on.cleanup()
def shutdown(**_: Any) -> None:
    """Stop reporting readiness while the operator shuts down."""
    health.mark_not_ready()


def main() -> None:
    """Run the operator across all namespaces."""
    kopf.run(clusterwide=True)
