"""
Domain models for registry event dispatch.

This module defines the core data structures used throughout the application.
All models are immutable (frozen dataclasses) to prevent accidental mutation
while an event travels through the pipeline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass(frozen=True)
class Platform:
    """
    Operating system and CPU architecture of an image.

    Attributes:
        os: Operating system (e.g., "linux")
        architecture: CPU architecture (e.g., "amd64", "arm")
        variant: CPU variant (e.g., "v7"), empty when not applicable
    """

    os: str
    architecture: str
    variant: str = ""

    def __str__(self) -> str:
        if self.variant:
            return f"{self.os}/{self.architecture}/{self.variant}"
        return f"{self.os}/{self.architecture}"

    @classmethod
    def parse(cls, value: str) -> "Platform":
        """
        Parse a platform string such as "linux/arm/v7".

        Raises:
            ValueError: If the string does not have two or three parts
        """
        parts = value.strip().split("/")
        if len(parts) not in (2, 3) or not all(parts):
            raise ValueError(f"Invalid platform: {value!r}")
        return cls(*parts)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Optional["Platform"]:
        """Create from an OCI platform descriptor, None if os/architecture are missing."""
        os_name = data.get("os") or ""
        architecture = data.get("architecture") or ""
        if not os_name or not architecture:
            return None
        return cls(os=os_name, architecture=architecture, variant=data.get("variant") or "")


@dataclass(frozen=True)
class RegistryEvent:
    """
    Canonical description of a pushed artifact.

    Attributes:
        registry: Registry host with optional port
        repository: Repository path inside the registry
        tag: Tag, empty if only the digest is known
        digest: Content digest in "algorithm:hex" form, may be empty
        platform: Platform carried by the notification, if any
    """

    registry: str
    repository: str
    tag: str = ""
    digest: str = ""
    platform: Optional[Platform] = None

    def reference(self) -> str:
        """Digest-qualified reference when a digest is known, tag-qualified otherwise."""
        if self.digest:
            return f"{self.registry}/{self.repository}@{self.digest}"
        return f"{self.registry}/{self.repository}:{self.tag}"


@dataclass(frozen=True)
class NotificationTarget:
    """Descriptor of the object a notification refers to."""

    media_type: str = ""
    digest: str = ""
    size: int = 0
    repository: str = ""
    url: str = ""
    tag: str = ""
    platform: Optional[dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Any) -> "NotificationTarget":
        if not isinstance(data, dict):
            return cls()
        platform = data.get("platform")
        size = data.get("size")
        return cls(
            media_type=str(data.get("mediaType") or ""),
            digest=str(data.get("digest") or ""),
            size=size if isinstance(size, int) else 0,
            repository=str(data.get("repository") or ""),
            url=str(data.get("url") or ""),
            tag=str(data.get("tag") or ""),
            platform=platform if isinstance(platform, dict) else None,
        )


@dataclass(frozen=True)
class RawNotification:
    """
    One event record of a registry notification envelope.

    Built leniently: fields missing from the payload become empty values so
    that filtering never has to deal with partial records.
    """

    id: str = ""
    action: str = ""
    timestamp: str = ""
    target: NotificationTarget = field(default_factory=NotificationTarget)

    @classmethod
    def from_dict(cls, data: Any) -> "RawNotification":
        if not isinstance(data, dict):
            return cls()
        return cls(
            id=str(data.get("id") or ""),
            action=str(data.get("action") or ""),
            timestamp=str(data.get("timestamp") or ""),
            target=NotificationTarget.from_dict(data.get("target")),
        )


@dataclass(frozen=True)
class SecretKeyRef:
    """Reference to one key of a named secret."""

    name: str
    key: str


@dataclass(frozen=True)
class EnvBinding:
    """
    Environment variable of the scan container.

    Exactly one of value or secret_ref is set.
    """

    name: str
    value: Optional[str] = None
    secret_ref: Optional[SecretKeyRef] = None


@dataclass(frozen=True)
class ContainerSpec:
    """Single container running the scanner."""

    name: str
    image: str
    command: tuple[str, ...]
    args: tuple[str, ...]
    env: tuple[EnvBinding, ...] = ()


@dataclass(frozen=True)
class ScanJobSpec:
    """
    Definition of a scan job.

    Attributes:
        name: Job name (the fingerprint)
        namespace: Namespace the job is placed in
        labels: Sanitized label set identifying the artifact
        restart_policy: Pod restart policy
        container: The scan container
    """

    name: str
    namespace: str
    labels: dict[str, str]
    restart_policy: str
    container: ContainerSpec

    def __hash__(self) -> int:
        return hash((self.name, self.namespace))


@dataclass(frozen=True)
class JobRef:
    """Existing job as returned by the orchestration platform."""

    name: str
    namespace: str = ""
    labels: dict[str, str] = field(default_factory=dict)

    def __hash__(self) -> int:
        return hash((self.name, self.namespace))


class DispatchOutcome(str, Enum):
    """Terminal states of the dispatch state machine."""

    FILTERED_OUT = "filtered_out"
    PLATFORM_UNSUPPORTED = "platform_unsupported"
    EXISTING = "existing"
    CREATED = "created"
    FAILED = "failed"


@dataclass(frozen=True)
class DispatchResult:
    """
    Result of dispatching one event for one platform.

    Attributes:
        outcome: Terminal state reached
        event: Normalized event (None when normalization never happened)
        platform: Resolved platform (None when resolution never happened)
        job_name: Fingerprint used as job name, if computed
        error: Error message for FAILED outcomes
    """

    outcome: DispatchOutcome
    event: Optional[RegistryEvent] = None
    platform: Optional[Platform] = None
    job_name: Optional[str] = None
    error: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.outcome == DispatchOutcome.CREATED
