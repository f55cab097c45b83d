from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from threading import Lock, RLock
from typing import Callable, List, Optional, Tuple

from inkpipe.core.config import ThrottleConfig, with_throttle_overrides
from inkpipe.core.timers import Scheduler, TimerHandle
from inkpipe.core.types import EventKind, NormalizedInputEvent

log = logging.getLogger("inkpipe.throttle")

Emitted = List[NormalizedInputEvent]


@dataclass(frozen=True)
class ThrottleState:
    """
    Everything the throttle decision depends on.

    buffer holds held-back moves, oldest first. last_emitted is the event
    distance/time guards compare against; last_flush_ms drives forced flushes.
    """
    buffer: Tuple[NormalizedInputEvent, ...] = ()
    last_emitted: Optional[NormalizedInputEvent] = None
    last_flush_ms: float = 0.0
    in_stroke: bool = False


IDLE = ThrottleState()


def _distance(a: NormalizedInputEvent, b: NormalizedInputEvent) -> float:
    return math.hypot(a.x - b.x, a.y - b.y)


def flush_step(state: ThrottleState) -> Tuple[ThrottleState, Emitted]:
    """Emit the newest buffered event, drop the rest."""
    if not state.buffer:
        return state, []
    latest = state.buffer[-1]
    return replace(state, buffer=(), last_emitted=latest, last_flush_ms=latest.t_ms), [latest]


def throttle_step(
    state: ThrottleState, event: NormalizedInputEvent, cfg: ThrottleConfig
) -> Tuple[ThrottleState, Emitted]:
    """
    Pure throttle transition: (state, event) -> (state', emitted).

    start and end/cancel are always emitted. Moves are held back while they
    are too close in time or space to the last emitted event, and at most one
    held move is released per flush.
    """
    if event.kind == EventKind.START:
        return ThrottleState(last_emitted=event, last_flush_ms=event.t_ms, in_stroke=True), [event]

    if event.kind.terminal:
        _, flushed = flush_step(state)
        return IDLE, flushed + [event]

    last = state.last_emitted
    too_soon = last is not None and (event.t_ms - last.t_ms) < cfg.min_time_interval_ms
    too_close = last is not None and _distance(event, last) < cfg.min_distance

    if too_soon or too_close:
        buf = state.buffer + (event,)
        if len(buf) > cfg.max_buffer_size:
            buf = buf[len(buf) - cfg.max_buffer_size:]
        state = replace(state, buffer=buf)
        if event.t_ms - state.last_flush_ms >= cfg.force_flush_interval_ms:
            return flush_step(state)
        return state, []

    state, flushed = flush_step(state)
    return replace(state, last_emitted=event, last_flush_ms=event.t_ms), flushed + [event]


class Throttler:
    """
    Owns one ThrottleState plus the periodic forced-flush timer.

    The timer is armed on start and cancelled on end/cancel/destroy. Events
    it releases go to on_flush; events released by process_event are
    returned to the caller. Without a scheduler there is no timer and
    forced flushes only happen inside process_event.

    A timer tick holds dispatch_lock from taking the buffered event until
    on_flush returns. Hosts that deliver process_event's output under the
    same lock get one ordered stream. A tick from a timer that was
    cancelled or re-armed in the meantime releases nothing.
    """

    def __init__(
        self,
        config: ThrottleConfig = ThrottleConfig(),
        scheduler: Optional[Scheduler] = None,
        on_flush: Optional[Callable[[NormalizedInputEvent], None]] = None,
        dispatch_lock: Optional[RLock] = None,
    ) -> None:
        self.config = config
        self.scheduler = scheduler
        self.on_flush = on_flush

        self._state = IDLE
        self._timer: Optional[TimerHandle] = None
        self._generation = 0
        # the timer may run on its own thread
        self._lock = Lock()
        self._dispatch_lock = dispatch_lock if dispatch_lock is not None else RLock()

    @property
    def state(self) -> ThrottleState:
        return self._state

    def process_event(self, event: NormalizedInputEvent) -> Emitted:
        with self._lock:
            self._state, out = throttle_step(self._state, event, self.config)

        if event.kind == EventKind.START:
            self._arm_timer()
        elif event.kind.terminal:
            self._disarm_timer()
        return out

    def flush(self) -> Emitted:
        with self._lock:
            self._state, out = flush_step(self._state)
        return out

    def update_config(self, **overrides) -> None:
        interval = self.config.force_flush_interval_ms
        self.config = with_throttle_overrides(self.config, **overrides)
        if self._timer is not None and self.config.force_flush_interval_ms != interval:
            self._arm_timer()

    def stats(self) -> dict:
        s = self._state
        return {
            "in_stroke": s.in_stroke,
            "buffer_size": len(s.buffer),
            "last_emitted_ms": s.last_emitted.t_ms if s.last_emitted else None,
            "last_flush_ms": s.last_flush_ms,
            "timer_armed": self._timer is not None,
        }

    def destroy(self) -> None:
        self._disarm_timer()
        with self._lock:
            self._state = IDLE

    # ---- timer ----

    def _arm_timer(self) -> None:
        self._disarm_timer()
        if self.scheduler is None:
            return
        gen = self._generation
        self._timer = self.scheduler.call_every(
            self.config.force_flush_interval_ms, lambda: self._on_timer(gen)
        )

    def _disarm_timer(self) -> None:
        self._generation += 1
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self, gen: int) -> None:
        with self._dispatch_lock:
            if gen != self._generation or not self._state.in_stroke:
                return
            out = self.flush()
            if out:
                log.debug("timer flush released %d event(s)", len(out))
            if self.on_flush is not None:
                for ev in out:
                    self.on_flush(ev)
