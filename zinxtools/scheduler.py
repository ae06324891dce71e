"""A scheduler that drives hour, minute and second wheels and fires due timers."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable

from zinxtools.delayfunc import DelayFunc
from zinxtools.timer import (
    HOUR_INTERVAL,
    HOUR_NAME,
    HOUR_SCALES,
    MINUTE_INTERVAL,
    MINUTE_NAME,
    MINUTE_SCALES,
    SECOND_INTERVAL,
    SECOND_NAME,
    SECOND_SCALES,
    TIMERS_MAX_CAP,
    timer_after,
    timer_at,
    unix_milli,
)
from zinxtools.timewheel import TimeWheel

logger = logging.getLogger(__name__)

MAX_CHAN_BUFF = 2048
MAX_TIME_DELAY = 100  # ms

_QUEUE_POLL = 0.1


class TimerScheduler:
    """Keep timers on layered wheels and queue their callbacks when due.

    Due callbacks are put on ``trigger_queue`` once :meth:`start` is called;
    the caller takes them from there and calls them.
    """

    def __init__(self) -> None:
        second = TimeWheel(SECOND_NAME, SECOND_INTERVAL, SECOND_SCALES, TIMERS_MAX_CAP)
        minute = TimeWheel(MINUTE_NAME, MINUTE_INTERVAL, MINUTE_SCALES, TIMERS_MAX_CAP)
        hour = TimeWheel(HOUR_NAME, HOUR_INTERVAL, HOUR_SCALES, TIMERS_MAX_CAP)
        hour.add_time_wheel(minute)
        minute.add_time_wheel(second)
        self._wheels = (second, minute, hour)
        for wheel in self._wheels:
            wheel.run()

        self._top = hour
        self.id_gen = 0
        self.trigger_queue: queue.Queue[DelayFunc] = queue.Queue(maxsize=MAX_CHAN_BUFF)
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    def _next_id(self) -> int:
        self.id_gen = (self.id_gen + 1) & 0xFFFFFFFF
        return self.id_gen

    def create_timer_at(self, delay_func: DelayFunc, unix_nano: int) -> int:
        """Schedule ``delay_func`` at ``unix_nano`` ns since the epoch; return its ID."""
        with self._lock:
            timer_id = self._next_id()
            self._top.add_timer(timer_id, timer_at(delay_func, unix_nano))
            return timer_id

    def create_timer_after(self, delay_func: DelayFunc, seconds: float) -> int:
        """Schedule ``delay_func`` ``seconds`` from now; return its ID."""
        with self._lock:
            timer_id = self._next_id()
            self._top.add_timer(timer_id, timer_after(delay_func, seconds))
            return timer_id

    def cancel_timer(self, timer_id: int) -> None:
        """Remove the timer with ``timer_id`` from every wheel."""
        with self._lock:
            wheel: TimeWheel | None = self._top
            while wheel is not None:
                wheel.remove_timer(timer_id)
                wheel = wheel.next_wheel

    def _spawn(self, target: Callable[[], None], name: str) -> None:
        thread = threading.Thread(target=target, name=name, daemon=True)
        self._threads.append(thread)
        thread.start()

    def _put(self, delay_func: DelayFunc) -> None:
        while not self._stop.is_set():
            try:
                self.trigger_queue.put(delay_func, timeout=_QUEUE_POLL)
                return
            except queue.Full:
                continue

    def _poll(self) -> None:
        while not self._stop.is_set():
            now = unix_milli()
            for timer in self._top.get_timers_within(MAX_TIME_DELAY).values():
                if abs(now - timer.unix_ms) > MAX_TIME_DELAY:
                    logger.error(
                        "want call at %d; real call at %d; delay %d",
                        timer.unix_ms, now, now - timer.unix_ms,
                    )
                self._put(timer.delay_func)
            self._stop.wait(MAX_TIME_DELAY / 2 / 1000)

    def _execute(self) -> None:
        while not self._stop.is_set():
            try:
                delay_func = self.trigger_queue.get(timeout=_QUEUE_POLL)
            except queue.Empty:
                continue
            threading.Thread(target=delay_func.call, daemon=True).start()

    def start(self) -> None:
        """Start moving due callbacks onto ``trigger_queue`` in the background."""
        self._stop.clear()
        self._spawn(self._poll, "timer-scheduler")

    def _start_executor(self) -> None:
        self._spawn(self._execute, "timer-executor")

    def stop(self) -> None:
        """Stop the scheduler's threads and its wheels."""
        self._stop.set()
        for thread in self._threads:
            thread.join()
        self._threads.clear()
        for wheel in self._wheels:
            wheel.stop()


def new_auto_exec_timer_scheduler() -> TimerScheduler:
    """Return a started scheduler that calls each due callback in its own thread."""
    scheduler = TimerScheduler()
    scheduler.start()
    scheduler._start_executor()
    return scheduler