"""
Event-to-job dispatch.

The dispatcher turns one normalized RegistryEvent into at most one scan job
per resolved platform. Idempotency relies on the deterministic fingerprint
used as job name and on treating "already exists" from the platform as
success; two dispatches for the same artifact may safely race.
"""

import logging
import threading
import time
from typing import Any, Optional

from constants import DISPATCH_TIMEOUT
from core.event_filter import is_relevant
from core.exceptions import (
    DispatchCancelledError,
    JobAlreadyExistsError,
    MalformedEventError,
    ScanhookException,
)
from core.fingerprint import fingerprint, labels
from core.job_builder import ScanJobBuilder
from core.models import DispatchOutcome, DispatchResult, Platform, RegistryEvent
from core.normalizer import normalize_event, parse_envelope
from core.platform_interface import JobPlatform
from core.platforms import PlatformResolver, is_platform_supported
from utils.logging_helpers import format_event_context

logger = logging.getLogger(__name__)


class DispatchContext:
    """
    Cancellation signal and deadline for one dispatch.

    Every blocking collaborator call receives the remaining time as its
    timeout; checkpoints between calls raise DispatchCancelledError once the
    context is cancelled or expired.
    """

    def __init__(
        self,
        timeout: Optional[float] = DISPATCH_TIMEOUT,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.deadline = time.monotonic() + timeout if timeout is not None else None
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self) -> None:
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None without deadline."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check(self, stage: str) -> Optional[float]:
        """
        Raise if the dispatch must stop, otherwise return the remaining time.

        Raises:
            DispatchCancelledError: If cancelled or past the deadline
        """
        if self.cancelled:
            raise DispatchCancelledError(f"dispatch cancelled before {stage}")
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise DispatchCancelledError(f"dispatch deadline exceeded before {stage}")
        return remaining


class Dispatcher:
    """
    Runs the dispatch state machine for registry events.
    """

    def __init__(
        self,
        job_platform: JobPlatform,
        resolver: PlatformResolver,
        builder: ScanJobBuilder,
    ):
        """
        Initialize dispatcher.

        Args:
            job_platform: Orchestration platform to create jobs on
            resolver: Platform resolver for events
            builder: Job definition builder (owns the target namespace)
        """
        self.job_platform = job_platform
        self.resolver = resolver
        self.builder = builder

    @property
    def namespace(self) -> str:
        return self.builder.namespace

    def dispatch(
        self,
        event: RegistryEvent,
        context: Optional[DispatchContext] = None,
    ) -> list[DispatchResult]:
        """
        Dispatch one normalized event.

        Args:
            event: Normalized registry event
            context: Cancellation and deadline, a default one is created if None

        Returns:
            One result per resolved platform (PLATFORM_UNSUPPORTED, EXISTING or CREATED)

        Raises:
            RegistryLookupError: If the platform cannot be resolved
            PlatformListError: If existing jobs cannot be listed
            PlatformCreateError: If job creation fails for a reason other than a conflict
            DispatchCancelledError: If the context is cancelled or expires
        """
        context = context or DispatchContext()
        platforms = self.resolver.resolve(event, timeout=context.check("platform resolution"))
        return [self._dispatch_platform(event, platform, context) for platform in platforms]

    def _dispatch_platform(
        self,
        event: RegistryEvent,
        platform: Platform,
        context: DispatchContext,
    ) -> DispatchResult:
        """Lookup-or-create for one (event, platform) pair."""
        log_context = format_event_context(event, platform)

        if not is_platform_supported(platform):
            logger.info(f"Skipping unsupported platform {platform} ({log_context})")
            return DispatchResult(DispatchOutcome.PLATFORM_UNSUPPORTED, event, platform)

        name = fingerprint(event, platform)
        label_set = labels(event, platform)

        existing = self.job_platform.list_jobs(
            self.namespace,
            label_set.selector(),
            timeout=context.check("listing jobs"),
        )
        # truncated label values may collide, the name identifies the artifact
        if any(job.name == name for job in existing):
            logger.info(f"Scan job {name} already exists ({log_context})")
            return DispatchResult(DispatchOutcome.EXISTING, event, platform, name)

        spec = self.builder.build(event, platform)
        logger.info(f"Creating scan job {name} ({log_context})")
        try:
            self.job_platform.create_job(
                self.namespace,
                spec,
                timeout=context.check("creating job"),
            )
        except JobAlreadyExistsError:
            # lost the race against a concurrent dispatch of the same artifact
            logger.info(f"Scan job {name} was created concurrently ({log_context})")
            return DispatchResult(DispatchOutcome.EXISTING, event, platform, name)

        return DispatchResult(DispatchOutcome.CREATED, event, platform, name)

    def process_envelope(
        self,
        payload: Any,
        context: Optional[DispatchContext] = None,
    ) -> list[DispatchResult]:
        """
        Synchronously filter, normalize and dispatch a notification envelope.

        Per-event failures are returned as FAILED results and never abort the
        remaining events.

        Raises:
            MalformedEventError: If the payload is not an envelope
        """
        results = []
        for notification in parse_envelope(payload):
            if not is_relevant(notification):
                results.append(DispatchResult(DispatchOutcome.FILTERED_OUT))
                continue

            try:
                event = normalize_event(notification)
            except MalformedEventError as e:
                logger.warning(f"Skipping notification {notification.id or '<no id>'}: {e}")
                results.append(DispatchResult(DispatchOutcome.FAILED, error=str(e)))
                continue

            try:
                results.extend(self.dispatch(event, context))
            except ScanhookException as e:
                logger.error(f"Dispatch failed ({format_event_context(event)}): {e}")
                results.append(DispatchResult(DispatchOutcome.FAILED, event, error=str(e)))

        return results


__all__ = ["Dispatcher", "DispatchContext"]
