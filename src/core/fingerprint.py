"""
Deterministic identity of an (artifact, platform) pair.

The fingerprint doubles as the job name, so the same artifact always maps
to the same Kubernetes object and a second create call is rejected by the
API server. Labels carry the same identity in readable form for list
queries.
"""

import hashlib
from typing import Optional

from constants import (
    FINGERPRINT_SEPARATOR,
    LABEL_VALUE_SUBSTITUTIONS,
    MAX_LABEL_VALUE_LENGTH,
    MAX_NAME_LENGTH,
)
from core.models import Platform, RegistryEvent

LABEL_KEYS = ("digest", "tag", "registry", "repository", "platform")

# label values must start and end with an alphanumeric character
_LABEL_EDGE_CHARS = "-_."


def fingerprint(event: RegistryEvent, platform: Optional[Platform]) -> str:
    """
    Hash the full reference and platform into a job name.

    Args:
        event: Normalized registry event
        platform: Resolved platform of the artifact

    Returns:
        Hex encoded SHA-256, truncated to the name length limit
    """
    fields = (
        event.registry,
        event.repository,
        event.tag,
        event.digest,
        str(platform) if platform else "",
    )
    digest = hashlib.sha256(FINGERPRINT_SEPARATOR.join(fields).encode("utf-8"))
    return digest.hexdigest()[:MAX_NAME_LENGTH]


def sanitize_label_value(value: str) -> str:
    """
    Make a string usable as a label value.

    Disallowed characters are substituted before truncation. Characters left
    dangling at the end are stripped only when the value was truncated.
    """
    for char, replacement in LABEL_VALUE_SUBSTITUTIONS.items():
        value = value.replace(char, replacement)
    if len(value) <= MAX_LABEL_VALUE_LENGTH:
        return value
    return value[:MAX_LABEL_VALUE_LENGTH].rstrip(_LABEL_EDGE_CHARS)


def platform_label_value(platform: Platform) -> str:
    """Render a platform as os_arch[_variant]."""
    return "_".join(p for p in (platform.os, platform.architecture, platform.variant) if p)


class LabelSet(dict):
    """
    Sanitized labels identifying a scan job.

    A plain dict of label key to value with a helper to render the
    Kubernetes label selector matching exactly this set.
    """

    def selector(self) -> str:
        """Equality-based selector, keys sorted for stable output."""
        return ",".join(f"{key}={self[key]}" for key in sorted(self))


def labels(event: RegistryEvent, platform: Optional[Platform]) -> LabelSet:
    """
    Derive the label set for an artifact.

    Args:
        event: Normalized registry event
        platform: Resolved platform, omitted from the labels when None

    Returns:
        LabelSet with the digest, tag, registry, repository and platform keys
    """
    values = {
        "digest": sanitize_label_value(event.digest),
        "tag": sanitize_label_value(event.tag),
        "registry": sanitize_label_value(event.registry),
        "repository": sanitize_label_value(event.repository),
    }
    if platform is not None:
        values["platform"] = sanitize_label_value(platform_label_value(platform))
    return LabelSet(values)


__all__ = [
    "LABEL_KEYS",
    "LabelSet",
    "fingerprint",
    "labels",
    "platform_label_value",
    "sanitize_label_value",
]
