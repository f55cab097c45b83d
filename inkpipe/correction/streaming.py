from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

from inkpipe.core.config import CorrectionConfig, merge_correction_config
from inkpipe.core.types import StrokePoint
from inkpipe.correction.pipeline import StageTimings, correct_with_timings

MIN_HISTORY = 10


def history_capacity(cfg: CorrectionConfig) -> int:
    return max(cfg.pressure_correction.smoothing_window, cfg.smoothing.min_points, MIN_HISTORY)


@dataclass(frozen=True)
class StrokeHistory:
    """Raw (uncorrected) samples of the stroke in progress, oldest first."""
    points: Tuple[StrokePoint, ...] = ()
    capacity: int = MIN_HISTORY

    def push(self, p: StrokePoint) -> "StrokeHistory":
        pts = self.points + (p,)
        if len(pts) > self.capacity:
            pts = pts[len(pts) - self.capacity:]
        return StrokeHistory(points=pts, capacity=self.capacity)

    def __len__(self) -> int:
        return len(self.points)


def correct_step(
    history: StrokeHistory, point: StrokePoint, cfg: CorrectionConfig
) -> Tuple[StrokeHistory, List[StrokePoint], StageTimings]:
    """
    Correct `point` against the history as it was, then remember the raw
    point. Corrected output never enters the history.
    """
    corrected, timings = correct_with_timings(point, history.points, cfg)
    return history.push(point), corrected, timings


class StreamingCorrector:
    """Stateful wrapper around the correction pipeline for one stroke at a time."""

    def __init__(self, config: CorrectionConfig = CorrectionConfig(), monitor=None) -> None:
        self._config = config
        # anything with observe_stage(name, ms), usually a PerformanceMonitor
        self.monitor = monitor
        self._history = StrokeHistory(capacity=history_capacity(config))
        self.last_timings: Optional[StageTimings] = None

    @property
    def config(self) -> CorrectionConfig:
        return self._config

    @property
    def history(self) -> StrokeHistory:
        return self._history

    @property
    def history_size(self) -> int:
        return len(self._history)

    @property
    def capacity(self) -> int:
        return self._history.capacity

    def process_point(self, point: StrokePoint) -> List[StrokePoint]:
        self._history, corrected, self.last_timings = correct_step(self._history, point, self._config)
        if self.monitor is not None:
            t = self.last_timings
            self.monitor.observe_stage("pressure", t.pressure_ms)
            self.monitor.observe_stage("smoothing", t.smoothing_ms)
            self.monitor.observe_stage("correction", t.total_ms)
        return corrected

    def reset(self) -> None:
        self._history = StrokeHistory(capacity=history_capacity(self._config))
        self.last_timings = None

    def update_config(self, overrides: Mapping[str, Any] | CorrectionConfig) -> None:
        if isinstance(overrides, CorrectionConfig):
            self._config = overrides
        else:
            self._config = merge_correction_config(self._config, overrides)

        cap = history_capacity(self._config)
        pts = self._history.points[-cap:]
        self._history = StrokeHistory(points=pts, capacity=cap)
