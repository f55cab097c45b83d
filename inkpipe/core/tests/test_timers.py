import threading
import time

import pytest

from inkpipe.core.filters import LowPass
from inkpipe.core.timers import IntervalScheduler, ManualScheduler, now_ms


def test_manual_scheduler_fires_in_order():
    s = ManualScheduler()
    calls = []
    s.call_every(10, lambda: calls.append(("a", s.t_ms)))
    s.call_every(15, lambda: calls.append(("b", s.t_ms)))

    fired = s.advance(30)

    assert fired == 5
    assert calls == [("a", 10), ("b", 15), ("a", 20), ("a", 30), ("b", 30)]
    assert s.t_ms == 30


def test_cancelled_timer_stops_firing():
    s = ManualScheduler()
    calls = []
    h = s.call_every(5, lambda: calls.append(s.t_ms))
    s.advance(12)
    h.cancel()
    s.advance(50)

    assert calls == [5, 10]
    assert s.active == 0


def test_interval_is_at_least_one_ms():
    s = ManualScheduler()
    calls = []
    s.call_every(0, lambda: calls.append(s.t_ms))
    s.advance(3)
    assert calls == [1, 2, 3]


def test_lowpass_seeds_then_smooths():
    lp = LowPass(0.5)
    assert lp.count == 0
    assert lp.apply(10.0) == 10.0
    assert lp.apply(20.0) == pytest.approx(15.0)
    assert lp.last == 20.0
    assert lp.count == 2


def test_lowpass_rejects_bad_alpha():
    with pytest.raises(ValueError):
        LowPass(0.0)
    with pytest.raises(ValueError):
        LowPass(1.5)


def test_interval_scheduler_runs_until_cancelled():
    fired = threading.Event()
    calls = []

    def tick():
        calls.append(1)
        fired.set()

    handle = IntervalScheduler().call_every(5, tick)
    try:
        assert fired.wait(2.0)
    finally:
        handle.cancel()

    n = len(calls)
    time.sleep(0.05)
    assert len(calls) <= n + 1


def test_now_ms_is_monotonic():
    a = now_ms()
    b = now_ms()
    assert b >= a
