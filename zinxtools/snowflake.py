"""Snowflake-style 64-bit unique ID generation."""

from __future__ import annotations

import threading
import time

WORKER_BITS = 10
SEQUENCE_BITS = 12
MAX_WORKER = (1 << WORKER_BITS) - 1
SEQUENCE_MASK = (1 << SEQUENCE_BITS) - 1
WORKER_SHIFT = SEQUENCE_BITS
TIMESTAMP_SHIFT = SEQUENCE_BITS + WORKER_BITS


class ClockMovedBackwardsError(RuntimeError):
    """Raised when the system clock reads earlier than the last issued ID."""


def _now_ms() -> int:
    return time.time_ns() // 1_000_000


class IDWorker:
    """Issue IDs built from a millisecond timestamp, a worker ID and a sequence."""

    def __init__(self, worker_id: int) -> None:
        if worker_id < 0 or worker_id > MAX_WORKER:
            raise ValueError(f"worker ID can't be greater than {MAX_WORKER} or less than 0")
        self.worker_id = worker_id
        self._sequence = 0
        self._last_timestamp = -1
        self._lock = threading.Lock()

    def next_id(self) -> int:
        """Return the next ID; raise ClockMovedBackwardsError if time went back."""
        with self._lock:
            timestamp = _now_ms()
            if timestamp < self._last_timestamp:
                raise ClockMovedBackwardsError("clock moved backwards")

            if timestamp == self._last_timestamp:
                self._sequence = (self._sequence + 1) & SEQUENCE_MASK
                if self._sequence == 0:
                    while timestamp <= self._last_timestamp:
                        timestamp = _now_ms()
            else:
                self._sequence = 0

            self._last_timestamp = timestamp
            return (
                (timestamp << TIMESTAMP_SHIFT)
                | (self.worker_id << WORKER_SHIFT)
                | self._sequence
            )