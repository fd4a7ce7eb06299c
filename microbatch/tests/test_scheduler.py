"""
Test BatchScheduler
Dispatch cycles, failure isolation and loop lifecycle
"""

import asyncio
import math
import threading
import time

import pytest

from microbatch.core.job_queue import JobQueue
from microbatch.core.processor import CallableProcessor, ProcessorExecutionError
from microbatch.core.scheduler import BatchScheduler, DispatchOutcome, SchedulerState
from microbatch.tests.helpers import FAST_INTERVAL, RecordingProcessor, wait_for
from microbatch.utils.logging_config import error_handler
from microbatch.utils.performance import performance_monitor


def make_scheduler(processor, job_quantity=10, interval=FAST_INTERVAL, **kwargs):
    queue = JobQueue()
    return queue, BatchScheduler(queue, processor, interval=interval, job_quantity=job_quantity, **kwargs)


class TestRunCycle:
    """run_cycle without the background thread"""

    def test_empty_cycle_does_not_call_processor(self, recording_processor):
        """Empty queue at fire time means no dispatch"""
        _, scheduler = make_scheduler(recording_processor)

        assert scheduler.run_cycle() is DispatchOutcome.EMPTY
        assert recording_processor.call_count == 0
        assert scheduler.stats()["empty_cycles"] == 1
        assert scheduler.stats()["cycles"] == 1

    @pytest.mark.parametrize(
        ("quantity", "queued", "expected"),
        [(10, 3, 3), (10, 10, 10), (10, 25, 10), (1, 5, 1)],
    )
    def test_batch_size_is_min_of_quantity_and_length(self, recording_processor, quantity, queued, expected):
        """Drained batch length is min(job_quantity, queue length)"""
        queue, scheduler = make_scheduler(recording_processor, job_quantity=quantity)
        queue.submit_many(range(queued))

        assert scheduler.run_cycle() is DispatchOutcome.SUCCEEDED
        assert recording_processor.sizes == [expected]
        assert len(queue) == queued - expected

    def test_cycles_needed_to_empty_queue(self, recording_processor):
        """N jobs with quantity Q take ceil(N/Q) non-empty cycles"""
        queue, scheduler = make_scheduler(recording_processor, job_quantity=4)
        queue.submit_many(range(11))

        outcomes = [scheduler.run_cycle() for _ in range(5)]

        assert outcomes.count(DispatchOutcome.SUCCEEDED) == math.ceil(11 / 4)
        assert recording_processor.sizes == [4, 4, 3]
        assert recording_processor.jobs == list(range(11))

    def test_processor_failure_is_contained(self):
        """A raising processor yields FAILED and the batch is dropped"""
        processor = RecordingProcessor(fail_on={1})
        queue, scheduler = make_scheduler(processor, job_quantity=2)
        queue.submit_many(["a", "b", "c"])

        assert scheduler.run_cycle() is DispatchOutcome.FAILED
        assert queue.snapshot() == ["c"]
        assert scheduler.run_cycle() is DispatchOutcome.SUCCEEDED
        assert processor.batches == [["a", "b"], ["c"]]

        stats = scheduler.stats()
        assert stats["batches_failed"] == 1
        assert stats["jobs_failed"] == 2
        assert stats["batches_dispatched"] == 1
        assert stats["jobs_dispatched"] == 1
        assert stats["last_error"] == "RuntimeError: batch 1 rejected"

    def test_failure_reported_to_error_handler(self):
        """Failures are logged through the global error handler"""
        processor = RecordingProcessor(fail_on={1})
        queue, scheduler = make_scheduler(processor)
        queue.submit("job")

        scheduler.run_cycle()

        summary = error_handler.get_error_summary()
        assert summary["error_counts"] == {"ProcessorExecutionError": 1}

    def test_on_error_callback_receives_wrapped_error(self):
        """on_error gets the wrapped error and the dropped batch"""
        received = []
        processor = RecordingProcessor(fail_on={1})
        queue, scheduler = make_scheduler(processor, on_error=lambda err, batch: received.append((err, batch)))
        queue.submit_many([1, 2])

        scheduler.run_cycle()

        assert len(received) == 1
        error, batch = received[0]
        assert isinstance(error, ProcessorExecutionError)
        assert isinstance(error.__cause__, RuntimeError)
        assert error.batch_size == 2
        assert error.cycle == 1
        assert batch == [1, 2]

    def test_failing_error_callback_does_not_escape(self):
        """A broken on_error callback is logged, not raised"""
        def broken_callback(error, batch):
            raise ValueError("callback broke")

        processor = RecordingProcessor(fail_on={1})
        queue, scheduler = make_scheduler(processor, on_error=broken_callback)
        queue.submit("job")

        assert scheduler.run_cycle() is DispatchOutcome.FAILED
        assert error_handler.get_error_summary()["error_counts"] == {
            "ProcessorExecutionError": 1,
            "ValueError": 1,
        }

    def test_async_processor_is_awaited(self):
        """Coroutine-returning processors complete within the cycle"""
        finished = []

        class AsyncProcessor:
            async def execute(self, batch):
                await asyncio.sleep(0.01)
                finished.append(list(batch))

        queue, scheduler = make_scheduler(AsyncProcessor())
        queue.submit_many(["x", "y"])

        assert scheduler.run_cycle() is DispatchOutcome.SUCCEEDED
        assert finished == [["x", "y"]]

    def test_async_processor_failure_is_contained(self):
        """Exceptions raised inside a coroutine count as failures"""
        async def reject(batch):
            raise ConnectionError("downstream unavailable")

        queue, scheduler = make_scheduler(CallableProcessor(reject))
        queue.submit("job")

        assert scheduler.run_cycle() is DispatchOutcome.FAILED
        assert scheduler.stats()["last_error"] == "ConnectionError: downstream unavailable"

    def test_dispatch_is_timed(self, recording_processor):
        """Each non-empty dispatch is measured"""
        queue, scheduler = make_scheduler(recording_processor)
        queue.submit("job")

        scheduler.run_cycle()
        scheduler.run_cycle()

        assert performance_monitor.get_summary()["operations_breakdown"] == {"dispatch": 1}


class TestSchedulerLoop:
    """Background loop lifecycle"""

    def test_initial_state(self, recording_processor):
        """Scheduler is created idle, not running"""
        _, scheduler = make_scheduler(recording_processor)

        assert scheduler.state is SchedulerState.CREATED
        assert scheduler.is_running is False

    def test_loop_dispatches_after_interval(self, recording_processor):
        """Jobs are dispatched by the loop thread"""
        queue, scheduler = make_scheduler(recording_processor)
        queue.submit_many(range(3))

        scheduler.start()
        try:
            assert scheduler.is_running
            assert wait_for(lambda: recording_processor.call_count == 1)
        finally:
            scheduler.stop(timeout=2)

        assert recording_processor.batches == [[0, 1, 2]]
        assert scheduler.state is SchedulerState.STOPPED
        assert scheduler.is_running is False

    def test_start_is_idempotent(self, recording_processor):
        """Calling start twice keeps one thread"""
        _, scheduler = make_scheduler(recording_processor)
        scheduler.start()
        thread = scheduler._thread
        scheduler.start()

        assert scheduler._thread is thread
        scheduler.stop(timeout=2)

    def test_restart_after_stop_raises(self, recording_processor):
        """A stopped scheduler cannot be restarted"""
        _, scheduler = make_scheduler(recording_processor)
        scheduler.start()
        scheduler.stop(timeout=2)

        with pytest.raises(RuntimeError, match="cannot be restarted"):
            scheduler.start()

    def test_run_cycle_after_stop_keeps_stopped_state(self, recording_processor):
        """A direct cycle on a stopped scheduler does not revive it"""
        queue, scheduler = make_scheduler(recording_processor)
        scheduler.start()
        scheduler.stop(timeout=2)
        queue.submit("late")

        assert scheduler.run_cycle() is DispatchOutcome.SUCCEEDED
        assert scheduler.state is SchedulerState.STOPPED
        with pytest.raises(RuntimeError, match="cannot be restarted"):
            scheduler.start()

    def test_run_cycle_before_start_keeps_created_state(self, recording_processor):
        """A direct cycle on a fresh scheduler leaves it unstarted"""
        queue, scheduler = make_scheduler(recording_processor)
        queue.submit("job")

        scheduler.run_cycle()

        assert scheduler.state is SchedulerState.CREATED
        assert scheduler.is_running is False

    def test_stop_cancels_armed_wait(self, recording_processor):
        """stop() returns promptly even with a long interval"""
        queue, scheduler = make_scheduler(recording_processor, interval=30)
        queue.submit("job")
        scheduler.start()

        started = time.monotonic()
        assert scheduler.stop(timeout=2) is True

        assert time.monotonic() - started < 1.0
        assert recording_processor.call_count == 0
        assert queue.snapshot() == ["job"]

    def test_stop_waits_for_in_flight_dispatch(self):
        """An in-flight batch finishes before stop() returns"""
        processor = RecordingProcessor(delay=0.3)
        queue, scheduler = make_scheduler(processor)
        queue.submit("job")
        scheduler.start()

        assert wait_for(lambda: processor.in_flight == 1)
        scheduler.stop(timeout=2)

        assert processor.in_flight == 0
        assert scheduler.stats()["batches_dispatched"] == 1

    def test_stop_with_drain_dispatches_remaining(self, recording_processor):
        """drain=True empties the queue in capped batches"""
        queue, scheduler = make_scheduler(recording_processor, job_quantity=4, interval=30)
        queue.submit_many(range(10))
        scheduler.start()

        scheduler.stop(timeout=2, drain=True)

        assert recording_processor.sizes == [4, 4, 2]
        assert queue.is_empty()

    def test_stop_with_drain_before_start(self, recording_processor):
        """Draining works on a scheduler that never started"""
        queue, scheduler = make_scheduler(recording_processor, job_quantity=5)
        queue.submit_many(range(6))

        assert scheduler.stop(drain=True) is True
        assert recording_processor.sizes == [5, 1]

    def test_stop_twice(self, recording_processor):
        """Second stop is a no-op"""
        _, scheduler = make_scheduler(recording_processor)
        scheduler.start()

        assert scheduler.stop(timeout=2) is True
        assert scheduler.stop(timeout=2) is True

    def test_stop_timeout_logs_warning(self):
        """A stop that gives up on a stuck dispatch is reported"""
        release = threading.Event()
        entered = threading.Event()

        def stuck(batch):
            entered.set()
            release.wait(5)

        queue, scheduler = make_scheduler(CallableProcessor(stuck))
        queue.submit("job")
        scheduler.start()
        try:
            assert entered.wait(2)
            assert scheduler.stop(timeout=0.05) is False

            summary = error_handler.get_error_summary()
            assert summary["total_warnings"] == 1
            assert summary["total_errors"] == 0
        finally:
            release.set()

        assert scheduler.stop(timeout=2) is True
        assert scheduler.state is SchedulerState.STOPPED

    def test_loop_survives_failed_batch(self):
        """The loop keeps dispatching after a failure"""
        processor = RecordingProcessor(fail_on={1})
        queue, scheduler = make_scheduler(processor, job_quantity=1)
        queue.submit_many(["bad", "good"])
        scheduler.start()
        try:
            assert wait_for(lambda: processor.call_count == 2)
        finally:
            scheduler.stop(timeout=2)

        assert processor.batches == [["bad"], ["good"]]
        assert scheduler.stats()["batches_failed"] == 1
        assert scheduler.stats()["batches_dispatched"] == 1
