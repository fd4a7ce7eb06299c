"""
Job Queue Module
Lock-guarded FIFO buffer shared by producers and the dispatch loop
"""

import threading
from collections import deque
from collections.abc import Iterable
from typing import Generic, TypeVar

T = TypeVar("T")


class JobQueue(Generic[T]):
    """Ordered buffer of pending jobs

    Jobs are opaque: the queue only tracks their presence and order.
    ``submit``, ``drain_up_to`` and ``clear`` serialize on one lock, so a
    drained job can never reappear and a cleared job can never be drained.
    """

    def __init__(self):
        self._jobs: deque[T] = deque()
        self._lock = threading.Lock()

    def submit(self, job: T) -> None:
        """Append a job to the tail"""
        with self._lock:
            self._jobs.append(job)

    def submit_many(self, jobs: Iterable[T]) -> None:
        """Append several jobs, keeping them contiguous"""
        items = list(jobs)
        with self._lock:
            self._jobs.extend(items)

    def drain_up_to(self, n: int) -> list[T]:
        """
        Remove and return the oldest jobs

        Args:
            n: Maximum number of jobs to take

        Returns:
            Up to ``n`` jobs in submission order (empty if the queue is empty)
        """
        if n <= 0:
            return []

        with self._lock:
            count = min(n, len(self._jobs))
            return [self._jobs.popleft() for _ in range(count)]

    def clear(self) -> int:
        """
        Discard every queued job

        Returns:
            Number of jobs discarded
        """
        with self._lock:
            discarded = len(self._jobs)
            self._jobs.clear()
        return discarded

    def snapshot(self) -> list[T]:
        """Copy of the queued jobs, oldest first"""
        with self._lock:
            return list(self._jobs)

    def is_empty(self) -> bool:
        return len(self) == 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._jobs)
