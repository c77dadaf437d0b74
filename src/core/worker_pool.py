"""
Bounded event channel and dispatch workers.

Decouples webhook ingestion from dispatch: the listener submits normalized
events into a bounded queue, worker threads drain it and run the dispatcher
for each event independently. Retryable failures are redelivered with
exponential backoff; everything else ends up in the failed dispatch log.
Workers take no per-fingerprint lock; concurrent dispatches for
the same artifact are made safe by the dispatcher itself.
"""

import logging
import queue
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional

from constants import (
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_QUEUE_SIZE,
    DEFAULT_RETRY_BASE_DELAY,
    DEFAULT_RETRY_MAX_DELAY,
    DEFAULT_WORKERS,
    DISPATCH_TIMEOUT,
    ENQUEUE_TIMEOUT,
)
from core.dispatcher import DispatchContext, Dispatcher
from core.error_classification import ErrorCategory, ErrorClassifier, backoff_delay
from core.exceptions import QueueFullError
from core.models import RegistryEvent
from core.retry_queue import FailedDispatchLog
from utils.logging_helpers import format_event_context

logger = logging.getLogger(__name__)

_POLL_INTERVAL = 0.5


@dataclass(eq=False)
class QueuedEvent:
    """Event waiting in the channel together with its delivery count."""

    event: RegistryEvent
    attempt: int = 1


class DispatchWorkerPool:
    """
    Worker threads draining a bounded channel of registry events.
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        workers: int = DEFAULT_WORKERS,
        queue_size: int = DEFAULT_QUEUE_SIZE,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        dispatch_timeout: Optional[float] = DISPATCH_TIMEOUT,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        retry_max_delay: float = DEFAULT_RETRY_MAX_DELAY,
        failed_log: Optional[FailedDispatchLog] = None,
    ):
        """
        Initialize worker pool.

        Args:
            dispatcher: Dispatcher run for every event
            workers: Number of worker threads
            queue_size: Capacity of the event channel
            max_attempts: Deliveries per event before giving up
            dispatch_timeout: Deadline in seconds for one dispatch
            retry_base_delay: First redelivery delay in seconds
            retry_max_delay: Upper bound for redelivery delays
            failed_log: Where given-up events are recorded
        """
        if workers < 1:
            raise ValueError("workers must be at least 1")
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")

        self.dispatcher = dispatcher
        self.workers = workers
        self.max_attempts = max(1, max_attempts)
        self.dispatch_timeout = dispatch_timeout
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.failed_log = failed_log if failed_log is not None else FailedDispatchLog()
        self.stats: Counter = Counter()

        self._queue: "queue.Queue[QueuedEvent]" = queue.Queue(maxsize=queue_size)
        self._stop = threading.Event()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()
        self._idle = threading.Condition(self._lock)
        self._outstanding = 0
        self._contexts: set[DispatchContext] = set()
        self._timers: dict[QueuedEvent, threading.Timer] = {}

    @property
    def running(self) -> bool:
        return self._executor is not None and not self._stop.is_set()

    def start(self) -> None:
        """Start the worker threads."""
        if self._executor is not None:
            return
        self._executor = ThreadPoolExecutor(
            max_workers=self.workers,
            thread_name_prefix="dispatch-worker",
        )
        for worker_id in range(self.workers):
            self._executor.submit(self._worker_loop, worker_id)
        logger.info(f"Started {self.workers} dispatch worker(s)")

    def submit(self, event: RegistryEvent, timeout: Optional[float] = ENQUEUE_TIMEOUT) -> None:
        """
        Put an event into the channel, blocking while it is full.

        Args:
            event: Normalized registry event
            timeout: Seconds to wait for room, None to wait forever

        Raises:
            QueueFullError: If the channel stays full or the pool is stopped
        """
        if self._stop.is_set():
            raise QueueFullError("dispatch pool is stopped")

        with self._lock:
            self._outstanding += 1
        try:
            self._queue.put(QueuedEvent(event), timeout=timeout)
        except queue.Full:
            self._finish()
            raise QueueFullError(f"event channel full, dropped {event.reference()}") from None

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """
        Block until every submitted event reached a terminal state.

        Returns:
            True if idle, False if the timeout elapsed first
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._outstanding == 0, timeout=timeout)

    def stop(self, wait: bool = True) -> None:
        """
        Stop the workers.

        In-flight dispatches are cancelled, pending redeliveries and queued
        events are recorded as failed so nothing is dropped silently.
        """
        if self._stop.is_set():
            return
        self._stop.set()

        with self._lock:
            contexts = list(self._contexts)
            timers = list(self._timers.items())
            self._timers.clear()
        for context in contexts:
            context.cancel()
        for item, timer in timers:
            timer.cancel()
            self._give_up(item, "pool stopped before redelivery", ErrorCategory.CANCELLED.value)

        if self._executor is not None:
            self._executor.shutdown(wait=wait)

        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            self._give_up(item, "pool stopped before dispatch", ErrorCategory.CANCELLED.value)
            self._queue.task_done()

        logger.info(f"Dispatch workers stopped ({self.failed_log.size()} failed dispatch(es) recorded)")

    def health(self) -> dict:
        """Snapshot of the pool state for health reporting."""
        with self._lock:
            outstanding = self._outstanding
            pending_retries = len(self._timers)
            stats = dict(self.stats)
        return {
            "running": self.running,
            "workers": self.workers,
            "queue_depth": self._queue.qsize(),
            "queue_capacity": self._queue.maxsize,
            "outstanding": outstanding,
            "pending_retries": pending_retries,
            "failed": self.failed_log.size(),
            "stats": stats,
        }

    def _worker_loop(self, worker_id: int) -> None:
        logger.debug(f"Dispatch worker {worker_id} started")
        while not self._stop.is_set():
            try:
                item = self._queue.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                continue
            try:
                self._handle(item)
            finally:
                self._queue.task_done()
        logger.debug(f"Dispatch worker {worker_id} stopped")

    def _handle(self, item: QueuedEvent) -> None:
        """Dispatch one delivery, isolating any failure to this event."""
        context = DispatchContext(timeout=self.dispatch_timeout)
        with self._lock:
            # stop() collects contexts under this lock after setting the flag
            stopped = self._stop.is_set()
            if not stopped:
                self._contexts.add(context)
        if stopped:
            self._give_up(item, "pool stopped before dispatch", ErrorCategory.CANCELLED.value)
            return
        try:
            results = self.dispatcher.dispatch(item.event, context)
        except Exception as e:
            self._handle_failure(item, e)
            return
        finally:
            with self._lock:
                self._contexts.discard(context)

        with self._lock:
            for result in results:
                self.stats[result.outcome.value] += 1
        self._finish()

    def _handle_failure(self, item: QueuedEvent, error: Exception) -> None:
        classified = ErrorClassifier.classify(error)
        context = format_event_context(item.event)

        if (
            classified.retry_recommended
            and item.attempt < self.max_attempts
            and not self._stop.is_set()
        ):
            delay = max(
                classified.retry_delay,
                backoff_delay(item.attempt, self.retry_base_delay, self.retry_max_delay),
            )
            logger.warning(
                f"Dispatch attempt {item.attempt}/{self.max_attempts} failed ({context}): "
                f"{error}. Retrying in {delay:.1f}s"
            )
            self._schedule_retry(QueuedEvent(item.event, item.attempt + 1), delay)
            return

        logger.error(f"Dispatch failed after {item.attempt} attempt(s) ({context}): {error}")
        self._give_up(item, str(error), classified.category.value)

    def _schedule_retry(self, item: QueuedEvent, delay: float) -> None:
        timer = threading.Timer(delay, self._redeliver, args=(item,))
        timer.daemon = True
        with self._lock:
            # stop() may have collected the timers already
            stopped = self._stop.is_set()
            if not stopped:
                self.stats["retried"] += 1
                self._timers[item] = timer
        if stopped:
            self._give_up(item, "pool stopped before redelivery", ErrorCategory.CANCELLED.value)
            return
        timer.start()

    def _redeliver(self, item: QueuedEvent) -> None:
        with self._lock:
            if self._timers.pop(item, None) is None:
                # cancelled by stop(), already recorded there
                return
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                continue
        self._give_up(item, "pool stopped before redelivery", ErrorCategory.CANCELLED.value)

    def _give_up(self, item: QueuedEvent, message: str, category: str) -> None:
        self.failed_log.add(item.event, message, category, item.attempt)
        with self._lock:
            self.stats["failed"] += 1
        self._finish()

    def _finish(self) -> None:
        with self._idle:
            self._outstanding -= 1
            if self._outstanding <= 0:
                self._outstanding = 0
                self._idle.notify_all()


__all__ = ["DispatchWorkerPool", "QueuedEvent"]
