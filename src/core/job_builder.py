"""
Construction of scan job definitions.

The builder is pure: identical (event, platform) inputs always produce an
identical ScanJobSpec. Scanner credentials are bound from a named secret by
key and never inlined.
"""

from constants import (
    JOB_RESTART_POLICY,
    SCAN_COMMAND,
    SCAN_CONTAINER_NAME,
    SCAN_IMAGE,
    SCAN_ORG_KEY,
    SCAN_SECRET_NAME,
    SCAN_TOKEN_KEY,
)
from core.exceptions import InvalidJobSpecError
from core.fingerprint import fingerprint, labels
from core.models import (
    ContainerSpec,
    EnvBinding,
    Platform,
    RegistryEvent,
    ScanJobSpec,
    SecretKeyRef,
)


class ScanJobBuilder:
    """Builds ScanJobSpecs for a fixed namespace and registry security setting."""

    def __init__(
        self,
        namespace: str,
        insecure_registry: bool = False,
        image: str = SCAN_IMAGE,
        secret_name: str = SCAN_SECRET_NAME,
    ):
        """
        Initialize job builder.

        Args:
            namespace: Namespace jobs are placed in
            insecure_registry: Pass --insecure to the scanner
            image: Scanner container image
            secret_name: Secret holding the scanner token and organization
        """
        self.namespace = namespace
        self.insecure_registry = insecure_registry
        self.image = image
        self.secret_name = secret_name

    def build(self, event: RegistryEvent, platform: Platform) -> ScanJobSpec:
        """
        Build the job definition for an artifact.

        Args:
            event: Normalized registry event
            platform: Resolved platform to scan

        Returns:
            Immutable job definition

        Raises:
            InvalidJobSpecError: If the event cannot form a reference
        """
        if not event.registry or not event.repository:
            raise InvalidJobSpecError(f"event without registry or repository: {event}")
        if not event.tag and not event.digest:
            raise InvalidJobSpecError(f"event without tag or digest: {event}")
        if platform is None:
            raise InvalidJobSpecError(f"no platform for {event.reference()}")

        container = ContainerSpec(
            name=SCAN_CONTAINER_NAME,
            image=self.image,
            command=SCAN_COMMAND,
            args=tuple(self.arguments(event, platform)),
            env=self.environment(),
        )

        return ScanJobSpec(
            name=fingerprint(event, platform),
            namespace=self.namespace,
            labels=dict(labels(event, platform)),
            restart_policy=JOB_RESTART_POLICY,
            container=container,
        )

    def arguments(self, event: RegistryEvent, platform: Platform) -> list[str]:
        """Scanner arguments for monitoring the image in the scan service."""
        args = [
            "container",
            "monitor",
            "-d",
            f"--org=$({SCAN_ORG_KEY})",
        ]
        if self.insecure_registry:
            args.append("--insecure")
        args.append(f"--target-reference={event.tag}@{event.digest}")
        args.append(f"--platform={platform}")
        args.append(event.reference())
        return args

    def environment(self) -> tuple[EnvBinding, ...]:
        return (
            EnvBinding(
                name=SCAN_TOKEN_KEY,
                secret_ref=SecretKeyRef(name=self.secret_name, key=SCAN_TOKEN_KEY),
            ),
            EnvBinding(
                name=SCAN_ORG_KEY,
                secret_ref=SecretKeyRef(name=self.secret_name, key=SCAN_ORG_KEY),
            ),
            EnvBinding(name="SNYK_DISABLE_ANALYTICS", value="1"),
        )


__all__ = ["ScanJobBuilder"]
