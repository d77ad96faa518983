"""Kopf handlers for the PagerDuty Operator."""

from . import integration  # noqa: F401
