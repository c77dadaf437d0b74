"""
Tests for error classification and backoff.
"""

import pytest

from core.error_classification import (
    RATE_LIMIT_DELAY,
    ErrorCategory,
    ErrorClassifier,
    backoff_delay,
)
from core.exceptions import (
    DispatchCancelledError,
    InvalidJobSpecError,
    PlatformCreateError,
    PlatformListError,
    ReferenceNotFoundError,
    RegistryAuthError,
    RegistryUnreachableError,
)


class TestErrorClassifier:
    """Test ErrorClassifier.classify."""

    @pytest.mark.parametrize(
        "error,category,retry",
        [
            (RegistryUnreachableError("ref", "connection refused"), ErrorCategory.TRANSIENT_REGISTRY, True),
            (RegistryUnreachableError("ref", "HTTP 503", 503), ErrorCategory.TRANSIENT_REGISTRY, True),
            (ReferenceNotFoundError("ref", "manifest unknown", 404), ErrorCategory.PERMANENT_NOT_FOUND, False),
            (RegistryAuthError("ref", "unauthorized", 401), ErrorCategory.PERMANENT_AUTH, False),
            (PlatformCreateError("job", "internal error", 500), ErrorCategory.TRANSIENT_PLATFORM, True),
            (PlatformCreateError("job", "connection reset"), ErrorCategory.TRANSIENT_PLATFORM, True),
            (PlatformCreateError("job", "forbidden", 403), ErrorCategory.PERMANENT_AUTH, False),
            (PlatformCreateError("job", "invalid", 422), ErrorCategory.PERMANENT_INVALID, False),
            (PlatformListError("digest=x", "service unavailable", 503), ErrorCategory.TRANSIENT_PLATFORM, True),
            (DispatchCancelledError("deadline exceeded"), ErrorCategory.CANCELLED, True),
            (InvalidJobSpecError("no platform"), ErrorCategory.PERMANENT_INVALID, False),
        ],
    )
    def test_scanhook_errors(self, error, category, retry):
        classified = ErrorClassifier.classify(error)
        assert classified.category == category
        assert classified.retry_recommended is retry
        assert classified.original_message == str(error)

    def test_rate_limit_status(self):
        """Test that HTTP 429 wins over the exception type."""
        for error in (
            RegistryUnreachableError("ref", "too many requests", 429),
            PlatformCreateError("job", "throttled", 429),
        ):
            classified = ErrorClassifier.classify(error)
            assert classified.category == ErrorCategory.RATE_LIMIT
            assert classified.retry_delay == RATE_LIMIT_DELAY

    def test_rate_limit_message(self):
        classified = ErrorClassifier.classify(RuntimeError("toomanyrequests: slow down"))
        assert classified.category == ErrorCategory.RATE_LIMIT
        assert classified.retry_recommended

    def test_network_message(self):
        classified = ErrorClassifier.classify(OSError("Connection refused"))
        assert classified.category == ErrorCategory.TRANSIENT_PLATFORM
        assert classified.retry_recommended

    def test_unknown(self):
        classified = ErrorClassifier.classify(KeyError("boom"))
        assert classified.category == ErrorCategory.UNKNOWN
        assert classified.retry_recommended


class TestBackoffDelay:
    def test_doubles(self):
        assert [backoff_delay(a, 1.0, 100.0) for a in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped(self):
        assert backoff_delay(10, 1.0, 60.0) == 60.0

    def test_zero_attempt(self):
        assert backoff_delay(0, 2.0, 60.0) == 2.0
