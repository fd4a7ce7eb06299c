"""
Micro-Batcher Module
Facade owning the job queue and the dispatch scheduler
"""

from __future__ import annotations

import threading
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

from ..utils.config import DEFAULT_BATCH_INTERVAL, DEFAULT_JOB_QUANTITY, BatcherConfig, ConfigurationError
from ..utils.logging_config import get_logger
from .job_queue import JobQueue
from .processor import BatchProcessor, is_processor
from .scheduler import BatchScheduler, ErrorCallback, SchedulerState

T = TypeVar("T")

logger = get_logger("batcher")


class MicroBatcher(Generic[T]):
    """Group submitted jobs into batches and hand them to a processor

    Example:
        >>> with MicroBatcher(processor, interval=0.5, job_quantity=10) as batcher:
        ...     batcher.submit({"id": 1})
    """

    def __init__(
        self,
        processor: BatchProcessor[T],
        interval: float = DEFAULT_BATCH_INTERVAL,
        job_quantity: int = DEFAULT_JOB_QUANTITY,
        *,
        on_error: ErrorCallback | None = None,
        autostart: bool = True,
        config: BatcherConfig | None = None,
    ):
        """
        Initialize micro-batcher

        Args:
            processor: Object with an ``execute(batch)`` method
            interval: Seconds between dispatch cycles
            job_quantity: Maximum jobs per batch
            on_error: Called with (error, batch) when a batch fails
            autostart: Start the scheduler immediately
            config: Full configuration; overrides ``interval`` and ``job_quantity``
        """
        if not is_processor(processor):
            msg = f"Invalid processor: {type(processor).__name__} has no callable execute()"
            raise ConfigurationError(msg)

        self.config = config or BatcherConfig(interval=interval, job_quantity=job_quantity)
        self.processor = processor

        self._queue: JobQueue[T] = JobQueue()
        self._scheduler: BatchScheduler[T] = BatchScheduler(
            self._queue,
            processor,
            interval=self.config.interval,
            job_quantity=self.config.job_quantity,
            on_error=on_error,
            thread_name=self.config.thread_name,
        )
        self._closed = False
        self._close_lock = threading.Lock()

        if autostart:
            self.start()

    @classmethod
    def from_config(
        cls,
        processor: BatchProcessor[T],
        config: BatcherConfig,
        **kwargs,
    ) -> MicroBatcher[T]:
        """Create a batcher from a BatcherConfig"""
        return cls(processor, config=config, **kwargs)

    # -------------------------------------------------------------------------
    # Producer API
    # -------------------------------------------------------------------------

    def submit(self, job: T) -> None:
        """Queue one job for the next dispatch cycle"""
        with self._close_lock:
            self._ensure_open()
            self._queue.submit(job)

    # Name kept for callers of the original API
    create_job = submit

    def submit_many(self, jobs: Iterable[T]) -> None:
        """Queue several jobs in order"""
        with self._close_lock:
            self._ensure_open()
            self._queue.submit_many(jobs)

    def flush(self) -> int:
        """
        Discard every queued job that has not been dispatched yet

        A batch already handed to the processor is not affected.

        Returns:
            Number of jobs discarded
        """
        discarded = self._queue.clear()
        if discarded:
            logger.info(f"Flushed {discarded} queued job(s)")
        return discarded

    flush_queue = flush

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the dispatch loop (done by the constructor unless autostart=False)"""
        self._ensure_open()
        logger.info(
            f"Micro-batcher started: every {self.config.interval_ms}ms, "
            f"up to {self.config.job_quantity} job(s) per batch"
        )
        self._scheduler.start()

    def shutdown(self, timeout: float | None = None, drain: bool | None = None) -> bool:
        """
        Stop dispatching

        Args:
            timeout: Max seconds to wait (defaults to config.shutdown_timeout)
            drain: Dispatch remaining jobs first (defaults to config.drain_on_shutdown)

        Returns:
            True if the scheduler thread has exited
        """
        with self._close_lock:
            if self._closed:
                return not self._scheduler.is_running
            self._closed = True

        if timeout is None:
            timeout = self.config.shutdown_timeout
        if drain is None:
            drain = self.config.drain_on_shutdown

        stopped = self._scheduler.stop(timeout=timeout, drain=drain)
        logger.info(f"Micro-batcher shut down ({len(self._queue)} job(s) left undispatched)")
        return stopped

    close = shutdown

    def run_once(self):
        """Run one dispatch cycle immediately on the calling thread"""
        self._ensure_open()
        return self._scheduler.run_cycle()

    def _ensure_open(self) -> None:
        # Callers that must not race shutdown() hold _close_lock
        if self._closed:
            msg = "Micro-batcher is closed"
            raise RuntimeError(msg)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def pending(self) -> int:
        """Number of jobs waiting for dispatch"""
        return len(self._queue)

    @property
    def pending_jobs(self) -> list[T]:
        return self._queue.snapshot()

    @property
    def interval(self) -> float:
        return self.config.interval

    @property
    def job_quantity(self) -> int:
        return self.config.job_quantity

    @property
    def is_running(self) -> bool:
        return self._scheduler.is_running

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def state(self) -> SchedulerState:
        return self._scheduler.state

    def stats(self) -> dict[str, Any]:
        """Dispatch counters plus current queue depth"""
        summary = self._scheduler.stats()
        summary["pending"] = self.pending
        return summary

    def __enter__(self) -> MicroBatcher[T]:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
        return False

    def __repr__(self) -> str:
        return (
            f"MicroBatcher(processor={self.processor!r}, interval={self.config.interval}, "
            f"job_quantity={self.config.job_quantity}, pending={self.pending})"
        )
