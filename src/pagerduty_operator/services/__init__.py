"""Service layer for the PagerDuty Operator."""
