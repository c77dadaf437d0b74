"""
Centralized configuration constants for Scanhook.

This module provides a single source of truth for the static tables
(manifest media types, supported platforms, label limits) and the
defaults shared by the dispatcher, the webhook server and the CLI.
"""

# ============================================================================
# Registry Notifications
# ============================================================================

PUSH_ACTION = "push"
"""Notification action emitted by the registry when a manifest is pushed."""

MEDIA_TYPE_DOCKER_MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"
MEDIA_TYPE_DOCKER_MANIFEST_LIST = "application/vnd.docker.distribution.manifest.list.v2+json"
MEDIA_TYPE_OCI_MANIFEST = "application/vnd.oci.image.manifest.v1+json"
MEDIA_TYPE_OCI_INDEX = "application/vnd.oci.image.index.v1+json"

KNOWN_MANIFEST_MEDIA_TYPES = (
    MEDIA_TYPE_DOCKER_MANIFEST,
    MEDIA_TYPE_DOCKER_MANIFEST_LIST,
    MEDIA_TYPE_OCI_MANIFEST,
    MEDIA_TYPE_OCI_INDEX,
)
"""Manifest and manifest-list content types that trigger a scan."""

INDEX_MEDIA_TYPES = (
    MEDIA_TYPE_DOCKER_MANIFEST_LIST,
    MEDIA_TYPE_OCI_INDEX,
)
"""Content types describing a multi-platform image index."""

# ============================================================================
# Platforms
# ============================================================================

SUPPORTED_PLATFORMS = (
    ("linux", "amd64", ""),
    ("linux", "arm64", ""),
    ("linux", "arm", "v7"),
    ("linux", "arm", "v6"),
    ("linux", "riscv64", ""),
    ("linux", "ppc64le", ""),
    ("linux", "s390x", ""),
    ("linux", "386", ""),
)
"""(os, architecture, variant) triples the scanner is able to analyze."""

UNKNOWN_PLATFORM_VALUE = "unknown"
"""os/architecture value used by attestation manifests inside an index."""

# ============================================================================
# Kubernetes Identity Limits
# ============================================================================

MAX_NAME_LENGTH = 63
"""Maximum length of a job name derived from the fingerprint."""

MAX_LABEL_VALUE_LENGTH = 63
"""Maximum length of a Kubernetes label value."""

LABEL_VALUE_SUBSTITUTIONS = {
    ":": "_",
}
"""Characters not allowed in label values and their replacements."""

KUBERNETES_LABEL_VALUE_SUBSTITUTIONS = {
    "/": "_",
}
"""Applied when labels are sent to the API server, which rejects "/" in values."""

FINGERPRINT_SEPARATOR = "|"
"""Separator between the fields hashed into a fingerprint."""

# ============================================================================
# Scan Job
# ============================================================================

SCAN_CONTAINER_NAME = "scan"
SCAN_IMAGE = "snyk/snyk:linux"
SCAN_COMMAND = ("snyk",)

SCAN_SECRET_NAME = "snyk-token"
"""Secret holding the scanner credentials, bound by reference only."""

SCAN_TOKEN_KEY = "SNYK_TOKEN"
SCAN_ORG_KEY = "SNYK_ORG"

JOB_RESTART_POLICY = "OnFailure"

# ============================================================================
# Runtime Defaults
# ============================================================================

DEFAULT_PORT = 8081
"""Port the webhook listener binds to."""

DEFAULT_HOST = "0.0.0.0"

DEFAULT_NAMESPACE = "default"
"""Namespace scan jobs are created in."""

DEFAULT_WORKERS = 2
"""Number of dispatch worker threads draining the event channel."""

DEFAULT_QUEUE_SIZE = 128
"""Capacity of the bounded event channel."""

DEFAULT_MAX_ATTEMPTS = 5
"""Deliveries of a single event before it is recorded as failed."""

DEFAULT_RETRY_BASE_DELAY = 1.0
"""Initial redelivery backoff in seconds (doubled per attempt)."""

DEFAULT_RETRY_MAX_DELAY = 60.0
"""Upper bound for redelivery backoff in seconds."""

# ============================================================================
# Timeouts (in seconds)
# ============================================================================

DISPATCH_TIMEOUT = 60
"""Deadline for one dispatch including lookup, list and create calls."""

REGISTRY_REQUEST_TIMEOUT = 15
"""Timeout for a single registry HTTP request."""

KUBERNETES_REQUEST_TIMEOUT = 30
"""Timeout for a single Kubernetes API request."""

ENQUEUE_TIMEOUT = 5
"""Time the webhook waits for room in a full event channel."""

# ============================================================================
# Registry API
# ============================================================================

DOCKER_HUB_REGISTRY = "docker.io"
DOCKER_HUB_API_HOST = "registry-1.docker.io"
"""Docker Hub serves the distribution API from a different host."""

DOCKER_HUB_CONFIG_KEYS = (
    "https://index.docker.io/v1/",
    "index.docker.io",
    "docker.io",
)
"""Keys Docker Hub credentials are stored under in docker config.json."""

MANIFEST_ACCEPT_HEADER = ", ".join(KNOWN_MANIFEST_MEDIA_TYPES)
