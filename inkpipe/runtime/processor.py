"""
InputProcessor: the wired pipeline.

    raw sample ─► normalize ─► throttle ─► correct ─► filter ─► on_event

One instance per drawing surface. Events released by the throttle timer go
through the same correct/filter/emit path as events released by handle().
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from threading import RLock
from typing import Any, Callable, Dict, List, Mapping, Optional

from inkpipe.core.config import (
    DEFAULT_CORRECTION, DEFAULT_INPUT_FILTER, DEFAULT_THROTTLE, CorrectionConfig,
    InputFilterConfig, SmoothingMethod, ThrottleConfig, device_preset_config,
)
from inkpipe.core.coordinates import CoordinateTransform
from inkpipe.core.timers import IntervalScheduler, Scheduler, now_ms
from inkpipe.core.types import (
    CanvasDisplay, DisplayUnavailableError, EventKind, NormalizedInputEvent,
    RawPointerSample, StrokePoint, ViewTransformState, clamp01,
)
from inkpipe.correction.pipeline import CorrectionQuality, StageTimings, assess_correction_quality
from inkpipe.correction.streaming import StreamingCorrector
from inkpipe.interpreter.input_filter import passes_filter
from inkpipe.interpreter.normalizer import DeviceLookup, generic_device_lookup, make_device_lookup, normalize_with_transform
from inkpipe.interpreter.throttler import Throttler
from inkpipe.runtime.perf_monitor import PerformanceMonitor

log = logging.getLogger("inkpipe.processor")

EventCallback = Callable[[NormalizedInputEvent], None]


def _check_display(display: Any) -> CanvasDisplay:
    if display is None:
        raise DisplayUnavailableError("no display target")
    if not isinstance(display, CanvasDisplay):
        raise DisplayUnavailableError(f"expected CanvasDisplay, got {type(display).__name__}")
    if display.display_width <= 0 or display.display_height <= 0:
        raise DisplayUnavailableError(
            f"display has no area: {display.display_width}x{display.display_height}"
        )
    if display.logical_width <= 0 or display.logical_height <= 0:
        raise DisplayUnavailableError(
            f"canvas has no area: {display.logical_width}x{display.logical_height}"
        )
    return display


def _kinds_for(kind: EventKind, n: int) -> List[EventKind]:
    """
    Event kinds for n corrected points produced from one event of `kind`.
    start stays first, end/cancel stays last, everything in between is a move.
    """
    if n <= 0:
        return []
    kinds = [EventKind.MOVE] * n
    if kind == EventKind.START:
        kinds[0] = EventKind.START
    elif kind.terminal:
        kinds[-1] = kind
    return kinds


class InputProcessor:
    def __init__(
        self,
        display: CanvasDisplay,
        view: Optional[ViewTransformState] = None,
        throttle: ThrottleConfig = DEFAULT_THROTTLE,
        correction: CorrectionConfig = DEFAULT_CORRECTION,
        input_filter: InputFilterConfig = DEFAULT_INPUT_FILTER,
        monitor: Optional[PerformanceMonitor] = None,
        scheduler: Optional[Scheduler] = None,
        device_lookup: DeviceLookup = generic_device_lookup,
        on_event: Optional[EventCallback] = None,
        clock: Callable[[], float] = now_ms,
        track_quality: bool = False,
    ) -> None:
        self.transform = CoordinateTransform(_check_display(display), view)
        self.input_filter = input_filter
        self.monitor = monitor
        self.device_lookup = device_lookup
        self.clock = clock
        self.track_quality = track_quality

        # handle() and the flush timer thread both end up in _process
        self._lock = RLock()

        if scheduler is None:
            scheduler = IntervalScheduler()
        self.throttler = Throttler(
            throttle, scheduler=scheduler, on_flush=self._on_timer_flush, dispatch_lock=self._lock,
        )
        self.corrector = StreamingCorrector(correction, monitor=monitor)

        self._on_event = on_event
        self._last_emitted: Optional[NormalizedInputEvent] = None
        self._events_in = 0
        self._events_out = 0
        self._originals: List[StrokePoint] = []
        self._corrected: List[StrokePoint] = []

    @classmethod
    def for_device(
        cls,
        display: CanvasDisplay,
        sample: RawPointerSample,
        platform: str = "",
        base: CorrectionConfig = DEFAULT_CORRECTION,
        **kwargs: Any,
    ) -> "InputProcessor":
        """Processor with correction tuned for the device that produced `sample`."""
        lookup = make_device_lookup(platform)
        device_id = lookup(sample)
        log.debug("detected input device %s", device_id)
        return cls(display, correction=device_preset_config(device_id, base), device_lookup=lookup, **kwargs)

    # ---- wiring ----

    def set_event_callback(self, callback: Optional[EventCallback]) -> None:
        self._on_event = callback

    def handle(self, sample: RawPointerSample, kind: EventKind) -> List[NormalizedInputEvent]:
        """Feed one raw sample. Returns the events emitted because of it, in order."""
        event = normalize_with_transform(sample, kind, self.transform, self.device_lookup)

        with self._lock:
            self._events_in += 1
            if kind == EventKind.START:
                self._begin_stroke(event)

            out: List[NormalizedInputEvent] = []
            for ev in self.throttler.process_event(event):
                out.extend(self._process(ev))

            if kind.terminal:
                self._end_stroke()
        return out

    def _on_timer_flush(self, event: NormalizedInputEvent) -> None:
        # the throttler already holds self._lock for the whole tick
        with self._lock:
            self._process(event)

    def _begin_stroke(self, event: NormalizedInputEvent) -> None:
        self.corrector.reset()
        self._last_emitted = None
        self._originals.clear()
        self._corrected.clear()

        pc = self.corrector.config.pressure_correction
        if event.device_id != pc.active_device and event.device_id in pc.device_calibration:
            self.corrector.update_config({"pressure_correction": {"active_device": event.device_id}})

    def _end_stroke(self) -> None:
        self.corrector.reset()
        self._last_emitted = None

    def _process(self, event: NormalizedInputEvent) -> List[NormalizedInputEvent]:
        if event.kind == EventKind.CANCEL:
            # abandoned stroke: nothing to correct against
            points = [event.point]
            timings = None
        else:
            points = self.corrector.process_point(event.point)
            timings = self.corrector.last_timings

        if self.track_quality and event.kind != EventKind.CANCEL:
            self._originals.append(event.point)
            self._corrected.extend(points)

        emitted = []
        for point, kind in zip(points, _kinds_for(event.kind, len(points))):
            ev = event.with_point(point, kind)
            if not passes_filter(ev, self._last_emitted, self.input_filter):
                continue
            self._last_emitted = ev
            emitted.append(ev)

        self._record(event, len(emitted), timings)
        for ev in emitted:
            self._events_out += 1
            if self._on_event is not None:
                self._on_event(ev)
        return emitted

    def _record(self, event: NormalizedInputEvent, points: int, t: Optional[StageTimings]) -> None:
        if self.monitor is None:
            return
        now = self.clock()
        self.monitor.record(
            input_delay_ms=max(0.0, now - event.t_ms),
            pressure_ms=t.pressure_ms if t else 0.0,
            smoothing_ms=t.smoothing_ms if t else 0.0,
            total_ms=t.total_ms if t else 0.0,
            points=points,
            t_ms=now,
        )

    # ---- context / config ----

    def update_view_transform(self, view: ViewTransformState) -> None:
        self.transform.update_view_transform(view)

    def update_display(self, display: CanvasDisplay) -> None:
        self.transform.update_display(_check_display(display))

    def update_throttle_config(self, **overrides: Any) -> None:
        with self._lock:
            self.throttler.update_config(**overrides)

    def update_correction_config(self, overrides: Mapping[str, Any] | CorrectionConfig) -> None:
        with self._lock:
            self.corrector.update_config(overrides)

    def update_input_filter(self, cfg: InputFilterConfig) -> None:
        self.input_filter = cfg

    def enable_pressure_correction(self, enabled: bool) -> None:
        self.update_correction_config({"pressure_correction": {"enabled": enabled}})

    def enable_smoothing(self, enabled: bool) -> None:
        self.update_correction_config({"smoothing": {"enabled": enabled}})

    def set_smoothing_strength(self, strength: float) -> None:
        self.update_correction_config({"smoothing": {"strength": clamp01(strength)}})

    def set_smoothing_method(self, method: SmoothingMethod | str) -> None:
        self.update_correction_config({"smoothing": {"method": method}})

    def set_realtime_mode(self, enabled: bool) -> None:
        self.update_correction_config({"smoothing": {"realtime_mode": enabled}})

    # ---- introspection ----

    def correction_quality(self) -> Optional[CorrectionQuality]:
        """Quality of the current stroke's correction; None unless track_quality is on."""
        if not self.track_quality:
            return None
        with self._lock:
            return assess_correction_quality(list(self._originals), list(self._corrected))

    def stats(self) -> Dict[str, Any]:
        cfg = self.corrector.config
        out: Dict[str, Any] = {
            "throttler": self.throttler.stats(),
            "correction": {
                "history_size": self.corrector.history_size,
                "pressure_enabled": cfg.pressure_correction.enabled,
                "active_device": cfg.pressure_correction.active_device,
                "smoothing_enabled": cfg.smoothing.enabled,
                "smoothing_method": cfg.smoothing.method.value,
                "smoothing_strength": cfg.smoothing.strength,
                "realtime_mode": cfg.smoothing.realtime_mode,
            },
            "processor": {
                "events_in": self._events_in,
                "events_out": self._events_out,
                "last_event_ms": self._last_emitted.t_ms if self._last_emitted else None,
            },
        }
        if self.monitor is not None:
            out["performance"] = asdict(self.monitor.statistics())
            out["stages"] = self.monitor.stage_stats()
        return out

    def destroy(self) -> None:
        with self._lock:
            self.throttler.destroy()
            self.corrector.reset()
            self._last_emitted = None
            self._originals.clear()
            self._corrected.clear()
        self._on_event = None
