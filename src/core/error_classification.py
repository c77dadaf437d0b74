"""
Error classification for redelivery decisions.

Categorizes dispatch failures into classes that determine whether the
worker pool redelivers an event and how long it waits before doing so.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from core.exceptions import (
    DispatchCancelledError,
    PlatformCreateError,
    PlatformListError,
    ReferenceNotFoundError,
    RegistryAuthError,
    RegistryLookupError,
    ScanhookException,
)


class ErrorCategory(str, Enum):
    """
    Error categories that determine retry strategy.
    """
    TRANSIENT_PLATFORM = "transient_platform"
    """Kubernetes API unavailable or erroring - retry with backoff"""

    TRANSIENT_REGISTRY = "transient_registry"
    """Registry unreachable or erroring - retry with backoff"""

    RATE_LIMIT = "rate_limit"
    """Throttled by the registry or API server - retry with a long delay"""

    CANCELLED = "cancelled"
    """Dispatch cancelled or timed out - retry"""

    PERMANENT_NOT_FOUND = "permanent_not_found"
    """Image reference unknown to the registry - don't retry"""

    PERMANENT_AUTH = "permanent_auth"
    """Credentials rejected - don't retry"""

    PERMANENT_INVALID = "permanent_invalid"
    """Request rejected as invalid (bad event, bad job definition) - don't retry"""

    UNKNOWN = "unknown"
    """Unknown error - treat as transient"""


@dataclass(frozen=True)
class ClassifiedError:
    """
    An error with its classification and metadata.
    """
    category: ErrorCategory
    original_message: str
    retry_recommended: bool
    retry_delay: float = 0.0  # seconds, minimum wait before redelivery


RATE_LIMIT_DELAY = 30.0


class ErrorClassifier:
    """
    Classifies dispatch failures into categories.
    """

    # Patterns for errors that don't come from the Scanhook hierarchy
    RATE_LIMIT_PATTERNS = [
        r"toomanyrequests",
        r"rate limit",
        r"too many requests",
    ]

    NETWORK_PATTERNS = [
        r"timeout",
        r"timed out",
        r"connection refused",
        r"connection reset",
        r"network is unreachable",
        r"name or service not known",
        r"temporary failure in name resolution",
    ]

    @classmethod
    def classify(cls, error: Exception) -> ClassifiedError:
        """
        Classify an exception raised by a dispatch.

        The HTTP status carried by platform and registry errors takes
        priority, then the exception type, then message patterns.

        Args:
            error: Exception raised by Dispatcher.dispatch

        Returns:
            ClassifiedError with category and retry recommendation
        """
        message = str(error)
        status_code: Optional[int] = getattr(error, "status_code", None)

        if status_code == 429:
            return ClassifiedError(ErrorCategory.RATE_LIMIT, message, True, RATE_LIMIT_DELAY)

        if isinstance(error, DispatchCancelledError):
            return ClassifiedError(ErrorCategory.CANCELLED, message, True)

        if isinstance(error, ReferenceNotFoundError):
            return ClassifiedError(ErrorCategory.PERMANENT_NOT_FOUND, message, False)

        if isinstance(error, RegistryAuthError):
            return ClassifiedError(ErrorCategory.PERMANENT_AUTH, message, False)

        if isinstance(error, RegistryLookupError):
            return ClassifiedError(ErrorCategory.TRANSIENT_REGISTRY, message, True)

        if isinstance(error, (PlatformCreateError, PlatformListError)):
            # 4xx other than throttling means the request itself is wrong
            if status_code is not None and 400 <= status_code < 500:
                if status_code in (401, 403):
                    return ClassifiedError(ErrorCategory.PERMANENT_AUTH, message, False)
                return ClassifiedError(ErrorCategory.PERMANENT_INVALID, message, False)
            return ClassifiedError(ErrorCategory.TRANSIENT_PLATFORM, message, True)

        if isinstance(error, ScanhookException):
            category = ErrorCategory.UNKNOWN if error.retryable else ErrorCategory.PERMANENT_INVALID
            return ClassifiedError(category, message, error.retryable)

        message_lower = message.lower()
        if any(re.search(pattern, message_lower) for pattern in cls.RATE_LIMIT_PATTERNS):
            return ClassifiedError(ErrorCategory.RATE_LIMIT, message, True, RATE_LIMIT_DELAY)
        if any(re.search(pattern, message_lower) for pattern in cls.NETWORK_PATTERNS):
            return ClassifiedError(ErrorCategory.TRANSIENT_PLATFORM, message, True)

        return ClassifiedError(ErrorCategory.UNKNOWN, message, True)


def backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """
    Exponential backoff for the given 1-based delivery attempt.

    Examples:
        >>> [backoff_delay(a, 1.0, 5.0) for a in (1, 2, 3, 4)]
        [1.0, 2.0, 4.0, 5.0]
    """
    return min(max_delay, base_delay * (2 ** max(0, attempt - 1)))


__all__ = [
    "ErrorCategory",
    "ClassifiedError",
    "ErrorClassifier",
    "backoff_delay",
]
