"""Kubernetes operator provisioning PagerDuty services for Hive-managed clusters."""

__version__ = "0.1.0"
