"""
Shared test doubles and polling helpers
"""

import threading
import time

# Short enough to keep the suite fast, long enough to be stable on slow CI
FAST_INTERVAL = 0.05


class RecordingProcessor:
    """Processor that records every batch it receives"""

    def __init__(self, delay: float = 0.0, fail_on: set[int] | None = None):
        self.delay = delay
        self.fail_on = fail_on or set()
        self.batches: list[list] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def execute(self, batch):
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
            self.batches.append(list(batch))
            number = len(self.batches)
        try:
            if self.delay:
                time.sleep(self.delay)
            if number in self.fail_on:
                msg = f"batch {number} rejected"
                raise RuntimeError(msg)
        finally:
            with self._lock:
                self.in_flight -= 1

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.batches)

    @property
    def sizes(self) -> list[int]:
        with self._lock:
            return [len(b) for b in self.batches]

    @property
    def jobs(self) -> list:
        with self._lock:
            return [job for b in self.batches for job in b]


def wait_for(predicate, timeout: float = 3.0, poll: float = 0.005) -> bool:
    """Poll ``predicate`` until true or ``timeout`` elapses"""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(poll)
    return predicate()
