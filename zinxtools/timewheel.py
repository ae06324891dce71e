"""Hierarchical timing wheels for managing many timers cheaply."""

from __future__ import annotations

import logging
import threading

from zinxtools.timer import Timer, unix_milli

logger = logging.getLogger(__name__)


class TimeWheel:
    """A ring of ``scales`` slots, each ``interval`` milliseconds wide.

    A timer further away than one slot is hashed onto the slot it falls in;
    a nearer one is handed to the next, finer wheel, or kept in the current
    slot when this wheel is the finest.
    """

    def __init__(self, name: str, interval: int, scales: int, max_cap: int) -> None:
        if interval < 1:
            raise ValueError("interval must be at least 1 ms")
        if scales < 1:
            raise ValueError("scales must be at least 1")
        self.name = name
        self.interval = interval
        self.scales = scales
        self.max_cap = max_cap
        self.next_wheel: TimeWheel | None = None
        self._cur_index = 0
        self._slots: list[dict[int, Timer]] = [{} for _ in range(scales)]
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        logger.info("Init timerWheel name = %s is Done!", name)

    def _add(self, timer_id: int, timer: Timer, force_next: bool) -> None:
        delay = timer.unix_ms - unix_milli()
        if delay >= self.interval:
            steps = delay // self.interval
            self._slots[(self._cur_index + steps) % self.scales][timer_id] = timer
        elif self.next_wheel is None:
            # On the finest wheel a timer must not be left on a slot that has
            # already passed, or it would never be picked up.
            index = (self._cur_index + 1) % self.scales if force_next else self._cur_index
            self._slots[index][timer_id] = timer
        else:
            self.next_wheel.add_timer(timer_id, timer)

    def add_timer(self, timer_id: int, timer: Timer) -> None:
        """Place ``timer`` under ``timer_id`` on this wheel or a finer one."""
        with self._lock:
            self._add(timer_id, timer, False)

    def remove_timer(self, timer_id: int) -> None:
        """Remove the timer with ``timer_id`` from this wheel, if it is here."""
        with self._lock:
            for slot in self._slots:
                slot.pop(timer_id, None)

    def add_time_wheel(self, next_wheel: TimeWheel) -> None:
        """Link ``next_wheel`` as the finer wheel below this one."""
        self.next_wheel = next_wheel
        logger.info("Add timerWheel[%s]'s next [%s] is succ!", self.name, next_wheel.name)

    def _tick(self) -> None:
        with self._lock:
            current = self._slots[self._cur_index]
            self._slots[self._cur_index] = {}
            for timer_id, timer in current.items():
                self._add(timer_id, timer, True)

            following = (self._cur_index + 1) % self.scales
            upcoming = self._slots[following]
            self._slots[following] = {}
            for timer_id, timer in upcoming.items():
                self._add(timer_id, timer, True)

            self._cur_index = following

    def _turn(self) -> None:
        while not self._stop.wait(self.interval / 1000):
            self._tick()

    def run(self) -> None:
        """Start turning the wheel one slot per interval in the background."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._turn, name=f"timewheel-{self.name}", daemon=True)
        self._thread.start()
        logger.info("timerwheel name = %s is running...", self.name)

    def stop(self) -> None:
        """Stop turning the wheel and wait for its thread to end."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join()
            self._thread = None

    def get_timers_within(self, duration_ms: int) -> dict[int, Timer]:
        """Take and return the finest wheel's current timers due within ``duration_ms``."""
        leaf = self
        while leaf.next_wheel is not None:
            leaf = leaf.next_wheel

        due: dict[int, Timer] = {}
        with leaf._lock:
            now = unix_milli()
            slot = leaf._slots[leaf._cur_index]
            for timer_id, timer in list(slot.items()):
                if timer.unix_ms - now < duration_ms:
                    due[timer_id] = timer
                    del slot[timer_id]
        return due