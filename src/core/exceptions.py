"""
Exception hierarchy for Scanhook.

Provides a standardized exception hierarchy for consistent error handling
across the dispatch pipeline. All exceptions inherit from ScanhookException
and carry a ``retryable`` flag telling the worker pool whether redelivering
the event may succeed.
"""

from typing import Optional


class ScanhookException(Exception):
    """Base exception for all Scanhook errors."""

    retryable = False


class MalformedEventError(ScanhookException):
    """A registry notification could not be turned into a RegistryEvent."""

    def __init__(self, message: str, field: str = None):
        """
        Initialize malformed event error.

        Args:
            message: Description of the problem
            field: Notification field that failed validation (optional)
        """
        self.field = field
        if field:
            super().__init__(f"Malformed event ({field}): {message}")
        else:
            super().__init__(f"Malformed event: {message}")


class UnsupportedPlatformError(ScanhookException):
    """Image platform is not in the supported-platform allow-list."""

    def __init__(self, platform):
        self.platform = platform
        super().__init__(f"Unsupported platform: {platform}")


class RegistryLookupError(ScanhookException):
    """Image metadata could not be fetched from the registry."""

    retryable = True

    def __init__(self, reference: str, reason: str, status_code: Optional[int] = None):
        """
        Initialize registry lookup error.

        Args:
            reference: Image reference that was looked up
            reason: Reason for failure
            status_code: HTTP status returned by the registry, if any
        """
        self.reference = reference
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Registry lookup for {reference} failed: {reason}")


class RegistryUnreachableError(RegistryLookupError):
    """Registry did not answer or answered with a server error."""


class ReferenceNotFoundError(RegistryLookupError):
    """Registry does not know the manifest or blob."""

    retryable = False


class RegistryAuthError(RegistryLookupError):
    """Registry rejected the credentials."""

    retryable = False


class JobAlreadyExistsError(ScanhookException):
    """A job with the same name already exists on the platform."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Job {name} already exists")


class PlatformCreateError(ScanhookException):
    """Job creation failed for a reason other than a name conflict."""

    retryable = True

    def __init__(self, name: str, reason: str, status_code: Optional[int] = None):
        self.name = name
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to create job {name}: {reason}")


class PlatformListError(ScanhookException):
    """Listing existing jobs failed."""

    retryable = True

    def __init__(self, selector: str, reason: str, status_code: Optional[int] = None):
        self.selector = selector
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to list jobs matching {selector!r}: {reason}")


class DispatchCancelledError(ScanhookException):
    """Dispatch was cancelled or ran past its deadline."""

    retryable = True


class InvalidJobSpecError(ScanhookException):
    """Job definition could not be built from the event."""


class QueueFullError(ScanhookException):
    """The bounded event channel has no room left."""

    retryable = True


class ConfigurationException(ScanhookException):
    """Configuration is invalid or missing."""


__all__ = [
    "ScanhookException",
    "MalformedEventError",
    "UnsupportedPlatformError",
    "RegistryLookupError",
    "RegistryUnreachableError",
    "ReferenceNotFoundError",
    "RegistryAuthError",
    "JobAlreadyExistsError",
    "PlatformCreateError",
    "PlatformListError",
    "DispatchCancelledError",
    "InvalidJobSpecError",
    "QueueFullError",
    "ConfigurationException",
]
