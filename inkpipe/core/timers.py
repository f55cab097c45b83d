"""
Clock and periodic-callback primitives.

The throttler only needs "call this every N ms until cancelled". Hosts with
their own event loop drive a ManualScheduler from it; IntervalScheduler
uses a daemon timer thread.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Protocol


def now_ms() -> float:
    """Monotonic milliseconds."""
    return time.perf_counter() * 1000.0


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> TimerHandle: ...


# ============================================================
# Thread-backed
# ============================================================

class _RepeatingTimer:
    def __init__(self, interval_ms: float, callback: Callable[[], None]):
        self.interval_s = max(interval_ms, 1.0) / 1000.0
        self.callback = callback
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="inkpipe-flush", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        while not self._stop.wait(self.interval_s):
            self.callback()

    def cancel(self) -> None:
        self._stop.set()


class IntervalScheduler:
    """Runs callbacks on a daemon thread. Callers must guard shared state."""

    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> TimerHandle:
        return _RepeatingTimer(interval_ms, callback)


# ============================================================
# Host-driven
# ============================================================

@dataclass
class _ManualTimer:
    interval_ms: float
    callback: Callable[[], None]
    next_due_ms: float
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class ManualScheduler:
    """
    Deterministic scheduler: time only moves when advance() is called.

    Callbacks fire on the caller's thread, in due order.
    """
    t_ms: float = 0.0
    _timers: List[_ManualTimer] = field(default_factory=list)

    def call_every(self, interval_ms: float, callback: Callable[[], None]) -> TimerHandle:
        interval_ms = max(interval_ms, 1.0)
        timer = _ManualTimer(interval_ms=interval_ms, callback=callback, next_due_ms=self.t_ms + interval_ms)
        self._timers.append(timer)
        return timer

    @property
    def active(self) -> int:
        return sum(1 for t in self._timers if not t.cancelled)

    def advance(self, ms: float) -> int:
        """Move time forward, firing every due callback. Returns how many fired."""
        target = self.t_ms + ms
        fired = 0
        while True:
            live = [t for t in self._timers if not t.cancelled]
            self._timers = live
            due = [t for t in live if t.next_due_ms <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.next_due_ms)
            self.t_ms = timer.next_due_ms
            timer.next_due_ms += timer.interval_ms
            timer.callback()
            fired += 1
        self.t_ms = target
        return fired
