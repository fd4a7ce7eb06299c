"""
Batch Scheduler Module
Interval-driven dispatch loop that drains the job queue into a processor
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from ..utils.logging_config import error_handler, get_logger
from ..utils.performance import performance_monitor
from .job_queue import JobQueue
from .processor import BatchProcessor, ProcessorExecutionError, invoke_processor

T = TypeVar("T")

logger = get_logger("scheduler")

ErrorCallback = Callable[[ProcessorExecutionError, list[Any]], None]


class SchedulerState(str, Enum):
    """Where the dispatch loop currently is"""

    CREATED = "created"
    IDLE = "idle"
    DRAINING = "draining"
    DISPATCHING = "dispatching"
    STOPPED = "stopped"


class DispatchOutcome(str, Enum):
    """Result of one dispatch cycle"""

    EMPTY = "empty"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class SchedulerStats:
    """Counters kept across dispatch cycles"""
    cycles: int = 0
    empty_cycles: int = 0
    batches_dispatched: int = 0
    batches_failed: int = 0
    jobs_dispatched: int = 0
    jobs_failed: int = 0
    last_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycles": self.cycles,
            "empty_cycles": self.empty_cycles,
            "batches_dispatched": self.batches_dispatched,
            "batches_failed": self.batches_failed,
            "jobs_dispatched": self.jobs_dispatched,
            "jobs_failed": self.jobs_failed,
            "last_error": self.last_error,
        }


class BatchScheduler(Generic[T]):
    """Periodic drain-and-dispatch loop on a background thread

    Contract:
        - Once per ``interval`` the loop drains up to ``job_quantity`` jobs
          and, if any were drained, hands them to the processor and blocks
          until it returns.
        - The next interval is armed only after the processor returns, so two
          ``execute`` calls never overlap.
        - A failing processor is logged and the batch dropped; the loop
          keeps running.
        - ``stop()`` cancels the armed wait, lets an in-flight dispatch finish
          and joins the thread.
    """

    def __init__(
        self,
        queue: JobQueue[T],
        processor: BatchProcessor[T],
        interval: float,
        job_quantity: int,
        on_error: ErrorCallback | None = None,
        thread_name: str = "micro-batcher",
    ):
        """
        Initialize scheduler

        Args:
            queue: Queue to drain
            processor: Batch processor receiving drained batches
            interval: Seconds between the end of one cycle and the next drain
            job_quantity: Maximum jobs per batch
            on_error: Called with the wrapped error and the dropped batch
            thread_name: Name of the loop thread
        """
        self.queue = queue
        self.processor = processor
        self.interval = interval
        self.job_quantity = job_quantity
        self.on_error = on_error
        self.thread_name = thread_name

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        # Serializes cycles between the loop thread and direct run_cycle() callers
        self._dispatch_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._stats = SchedulerStats()
        self._state = SchedulerState.CREATED
        self._drain_on_stop = False

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Start the loop thread; the first drain happens one interval from now"""
        if self._state is SchedulerState.STOPPED:
            msg = "Scheduler has been stopped and cannot be restarted"
            raise RuntimeError(msg)

        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._state = SchedulerState.IDLE
        self._thread = threading.Thread(
            target=self._run_loop,
            name=self.thread_name,
            daemon=True,
        )
        self._thread.start()
        logger.debug(
            f"Scheduler started (interval={self.interval:.3f}s, job_quantity={self.job_quantity})"
        )

    def stop(self, timeout: float | None = None, drain: bool = False) -> bool:
        """
        Stop the loop

        Args:
            timeout: Max seconds to wait for the loop thread (None waits forever)
            drain: Dispatch everything still queued before exiting

        Returns:
            True if the loop thread has exited
        """
        if self._state is SchedulerState.STOPPED and self._thread is None:
            return True

        self._drain_on_stop = drain
        self._stop_event.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
            if thread.is_alive():
                error_handler.log_warning(
                    f"Scheduler thread did not exit within {timeout}s",
                    context="Scheduler stop",
                    extra_data={"thread": thread.name, "pending": len(self.queue)},
                )
                return False
        elif thread is None and drain:
            # Never started: drain on the caller's thread
            self._drain_remaining()

        self._thread = None
        self._state = SchedulerState.STOPPED
        logger.debug(f"Scheduler stopped ({self._stats.cycles} cycles run)")
        return True

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def state(self) -> SchedulerState:
        return self._state

    def stats(self) -> dict[str, Any]:
        """Snapshot of the dispatch counters"""
        with self._stats_lock:
            return self._stats.to_dict()

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def run_cycle(self) -> DispatchOutcome:
        """Run one drain/dispatch cycle now (public for testing).

        Never raises because of the processor.
        """
        with self._dispatch_lock:
            resting = self._state
            self._state = SchedulerState.DRAINING
            batch = self.queue.drain_up_to(self.job_quantity)

            with self._stats_lock:
                self._stats.cycles += 1
                cycle = self._stats.cycles

            if not batch:
                with self._stats_lock:
                    self._stats.empty_cycles += 1
                self._settle(resting)
                return DispatchOutcome.EMPTY

            self._state = SchedulerState.DISPATCHING
            outcome = self._dispatch(batch, cycle)
            self._settle(resting)
            return outcome

    def _settle(self, resting: SchedulerState) -> None:
        """Return to the state a cycle started from; stop() during the cycle wins"""
        if self._state is not SchedulerState.STOPPED:
            self._state = resting

    def _dispatch(self, batch: list[T], cycle: int) -> DispatchOutcome:
        size = len(batch)
        logger.debug(f"Cycle {cycle}: dispatching {size} job(s), {len(self.queue)} still queued")

        try:
            with performance_monitor.measure("dispatch"):
                invoke_processor(self.processor, batch)
        except Exception as e:
            error = ProcessorExecutionError(
                f"Processor failed on batch of {size} job(s) in cycle {cycle}: {e}",
                batch_size=size,
                cycle=cycle,
            )
            error.__cause__ = e

            with self._stats_lock:
                self._stats.batches_failed += 1
                self._stats.jobs_failed += size
                self._stats.last_error = f"{type(e).__name__}: {e}"

            error_handler.log_error(error, context="Batch dispatch", extra_data={"cycle": cycle, "batch_size": size})
            self._notify_error(error, batch)
            return DispatchOutcome.FAILED

        with self._stats_lock:
            self._stats.batches_dispatched += 1
            self._stats.jobs_dispatched += size

        return DispatchOutcome.SUCCEEDED

    def _notify_error(self, error: ProcessorExecutionError, batch: list[T]) -> None:
        if self.on_error is None:
            return
        try:
            self.on_error(error, batch)
        except Exception as callback_error:
            error_handler.log_error(callback_error, context="Batch error callback")

    def _drain_remaining(self) -> None:
        """Dispatch queued jobs until the queue is empty"""
        while not self.queue.is_empty():
            self.run_cycle()

    def _run_loop(self) -> None:
        """Background loop. Exits when the stop event is set."""
        while True:
            # Armed wait; set() from stop() cancels it
            if self._stop_event.wait(timeout=self.interval):
                break
            try:
                self.run_cycle()
            except Exception:
                # Queue or bookkeeping failure; the processor's own errors never get here
                logger.exception("Unexpected error in dispatch cycle")

        if self._drain_on_stop:
            self._drain_remaining()
