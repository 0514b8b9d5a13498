"""
Constants used throughout the managed serviceaccount agent.

This module defines all constant values used by the agent including:
- API coordinates of the ManagedServiceAccount resource
- Labels applied to resources created on the managed cluster
- Token rotation defaults
"""

# ManagedServiceAccount API coordinates on the hub
MSA_GROUP = "authentication.open-cluster-management.io"
MSA_VERSION = "v1alpha1"
MSA_PLURAL = "managedserviceaccounts"
MSA_KIND = "ManagedServiceAccount"
MSA_RESOURCE_TYPE = "managedserviceaccount"

# Label constants for resources created on the managed cluster
LABEL_KEY_IS_MANAGED_SERVICEACCOUNT = (
    "authentication.open-cluster-management.io/is-managed-serviceaccount"
)
LABEL_VALUE_TRUE = "true"

# Prefix for kopf bookkeeping annotations on hub objects
KOPF_ANNOTATION_PREFIX = "managed-serviceaccount.open-cluster-management.io"
PEERING_NAME = "managed-serviceaccount-agent"

# Token rotation defaults
DEFAULT_ROTATION_VALIDITY = "8640h0m0s"  # 360 days
DEFAULT_REFRESH_THRESHOLD_SECONDS = 15 * 24 * 60 * 60  # 15 days

# Timeout and retry constants (in seconds)
DEFAULT_REMOTE_CALL_TIMEOUT = 10
DEFAULT_RETRY_DELAY = 30
CONFLICT_RETRY_DELAY = 1
DEFAULT_RESYNC_INTERVAL = 600

# CA bundle mounted into every pod with a service account
IN_CLUSTER_CA_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/ca.crt"

# Outcome log messages
SUCCESS_TOKEN_REFRESHED = "Refreshed token"
SKIPPED_TOKEN_REFRESH = "Skipped creating token"
