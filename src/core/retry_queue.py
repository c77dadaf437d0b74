"""
Record of events whose dispatch failed for good.

Events land here when redelivery is not recommended for their error or
when they have used up their delivery attempts.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from core.models import RegistryEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FailedDispatch:
    """Record of a dispatch that will not be retried."""

    event: RegistryEvent
    """Event that failed to dispatch"""

    error_message: str
    """Error message of the last attempt"""

    error_category: str
    """Category from the error classifier ('transient_platform', 'permanent_not_found', ...)"""

    attempts: int
    """Number of deliveries made"""

    failed_at: Optional[datetime] = None
    """When the event was given up on"""


class FailedDispatchLog:
    """
    Bounded, thread-safe log of failed dispatches.

    Oldest records are dropped once max_size is reached.
    """

    def __init__(self, max_size: int = 1000):
        self._records: deque[FailedDispatch] = deque(maxlen=max_size)
        self._lock = threading.Lock()

    def add(
        self,
        event: RegistryEvent,
        error_message: str,
        error_category: str,
        attempts: int,
    ) -> FailedDispatch:
        """
        Record a failed dispatch.

        Args:
            event: Event that failed
            error_message: Error message of the last attempt
            error_category: Classified error category
            attempts: Number of deliveries made
        """
        record = FailedDispatch(
            event=event,
            error_message=error_message,
            error_category=error_category,
            attempts=attempts,
            failed_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._records.append(record)
        logger.debug(f"Recorded failed dispatch of {event.reference()} after {attempts} attempt(s)")
        return record

    def get_all(self) -> list[FailedDispatch]:
        """Copy of all records, oldest first."""
        with self._lock:
            return list(self._records)

    def size(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def is_empty(self) -> bool:
        return self.size() == 0


__all__ = ["FailedDispatch", "FailedDispatchLog"]
