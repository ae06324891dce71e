import time

from zinxtools.delayfunc import DelayFunc
from zinxtools.timer import timer_after, timer_at, unix_milli


def test_unix_milli_tracks_wall_clock():
    before = time.time_ns() // 1_000_000
    value = unix_milli()
    after = time.time_ns() // 1_000_000
    assert before <= value <= after


def test_timer_at_converts_nanoseconds_to_milliseconds():
    timer = timer_at(DelayFunc(print), 1_500_000_000_123_456_789)
    assert timer.unix_ms == 1_500_000_000_123


def test_timer_after_is_due_after_delay():
    start = unix_milli()
    timer = timer_after(DelayFunc(print), 2)
    assert start + 2000 <= timer.unix_ms <= unix_milli() + 2000


def test_timers_fire_in_order_of_delay():
    fired = []
    threads = [
        timer_after(DelayFunc(lambda n, d: fired.append((n, d)), [i, 2 * i]), 0.05 * i).run()
        for i in range(5)
    ]
    for thread in threads:
        thread.join(timeout=5)
    assert fired == [(i, 2 * i) for i in range(5)]


def test_run_waits_until_due():
    fired_at = []
    start = unix_milli()
    timer_after(DelayFunc(lambda: fired_at.append(unix_milli())), 0.1).run().join(timeout=5)
    assert len(fired_at) == 1
    assert fired_at[0] - start >= 90


def test_past_timer_fires_at_once():
    fired = []
    thread = timer_at(DelayFunc(lambda: fired.append(True)), 0).run()
    thread.join(timeout=1)
    assert fired == [True]