"""
Collaborator interfaces of the dispatch pipeline.

Defines the narrow contracts the dispatcher needs from the orchestration
platform and from the registry, so that the Kubernetes and registry clients
can be swapped for in-memory fakes.
"""

from abc import ABC, abstractmethod
from typing import Optional

from core.models import JobRef, Platform, ScanJobSpec


class JobPlatform(ABC):
    """
    Abstract base class for orchestration platforms running scan jobs.

    Implementations must make create_job atomic: creating a job whose name
    already exists has to fail with JobAlreadyExistsError.
    """

    @abstractmethod
    def list_jobs(
        self,
        namespace: str,
        label_selector: str,
        timeout: Optional[float] = None,
    ) -> list[JobRef]:
        """
        List jobs matching a label selector.

        Args:
            namespace: Namespace to search
            label_selector: Equality based selector ("k=v,k2=v2")
            timeout: Seconds to wait for the platform

        Returns:
            Matching jobs

        Raises:
            PlatformListError: If the platform cannot be queried
        """
        pass

    @abstractmethod
    def create_job(
        self,
        namespace: str,
        spec: ScanJobSpec,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Create a job.

        Args:
            namespace: Namespace to create the job in
            spec: Job definition
            timeout: Seconds to wait for the platform

        Raises:
            JobAlreadyExistsError: If a job with the same name exists
            PlatformCreateError: For any other failure
        """
        pass


class PlatformLookup(ABC):
    """
    Abstract base class for registry metadata lookups.

    Used only when a notification does not carry the image platform.
    """

    @abstractmethod
    def resolve_platforms(
        self,
        reference: str,
        insecure: bool = False,
        timeout: Optional[float] = None,
    ) -> list[Platform]:
        """
        Fetch the platform(s) of an image.

        Args:
            reference: Image reference (registry/repository[:tag|@digest])
            insecure: Skip TLS certificate verification
            timeout: Seconds to wait for the registry

        Returns:
            One platform for a single manifest, every platform of an index

        Raises:
            RegistryLookupError: If the metadata cannot be fetched
        """
        pass


__all__ = [
    "JobPlatform",
    "PlatformLookup",
]
