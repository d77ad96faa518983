"""Constants for the PagerDuty Operator."""

import os

# API Groups
API_GROUP = "pagerduty.openshift.io"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

HIVE_GROUP = "hive.openshift.io"
HIVE_VERSION = "v1"
HIVE_GROUP_VERSION = f"{HIVE_GROUP}/{HIVE_VERSION}"

# Resource Kinds
KIND_INTEGRATION = "PagerDutyIntegration"
KIND_CLUSTER_DEPLOYMENT = "ClusterDeployment"
KIND_SYNC_SET = "SyncSet"
KIND_SECRET = "Secret"
KIND_CONFIG_MAP = "ConfigMap"

# Plurals for custom resources
PLURAL_INTEGRATIONS = "pagerdutyintegrations"
PLURAL_CLUSTER_DEPLOYMENTS = "clusterdeployments"
PLURAL_SYNC_SETS = "syncsets"

# Operator namespace holding the PagerDutyIntegration resources
OPERATOR_NAMESPACE = os.getenv("OPERATOR_NAMESPACE", "pagerduty-operator")

# Labels
LABEL_DOMAIN = "pd.managed.openshift.io"
LABEL_MANAGED_BY = f"{LABEL_DOMAIN}/managed-by"
LABEL_INTEGRATION_NAME = f"{LABEL_DOMAIN}/integration"
LABEL_CLUSTER_NOALERTS = "api.openshift.com/noalerts"
MANAGED_BY_VALUE = "pagerduty-operator"

# Finalizers
FINALIZER_PREFIX = f"{LABEL_DOMAIN}/"
LEGACY_FINALIZER = f"{FINALIZER_PREFIX}pagerduty"

# Derived object naming
SECRET_SUFFIX = "-pd-secret"
CONFIG_MAP_SUFFIX = "-pd-config"
LEGACY_SECRET_NAME = "pd-secret"
LEGACY_SYNC_SET_SUFFIX = "-pd-sync"

# Secret data keys
PAGERDUTY_SECRET_KEY = "PAGERDUTY_KEY"
PAGERDUTY_API_SECRET_KEY = "PAGERDUTY_API_KEY"

# ConfigMap data keys
CONFIG_SERVICE_ID = "SERVICE_ID"
CONFIG_SERVICE_NAME = "SERVICE_NAME"
CONFIG_ESCALATION_POLICY_ID = "ESCALATION_POLICY_ID"
CONFIG_RESOLVE_TIMEOUT = "RESOLVE_TIMEOUT"
CONFIG_ACKNOWLEDGE_TIMEOUT = "ACKNOWLEDGE_TIMEOUT"

# SyncSet defaults
SYNC_SET_APPLY_MODE = "Sync"

# Field Manager
FIELD_MANAGER = "pagerduty-operator"

# Condition Types
COND_READY = "Ready"
COND_CONFIGURATION_INVALID = "ConfigurationInvalid"
COND_RECONCILE_FAILED = "ReconcileFailed"

# Event Reasons
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_CONFIGURATION_INVALID = "ConfigurationInvalid"
EVENT_REASON_SERVICE_PROVISIONED = "ServiceProvisioned"
EVENT_REASON_SERVICE_REMOVED = "ServiceRemoved"
