"""Builder modules for derived resources and PagerDuty clients."""
