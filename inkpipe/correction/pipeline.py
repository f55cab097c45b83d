"""
Input correction pipeline: pressure correction, then coordinate smoothing.

A stage that blows up is logged and skipped for that sample; the pipeline
never drops a sample because of an internal fault.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Sequence, Tuple, TypeVar

from inkpipe.core.config import CorrectionConfig
from inkpipe.core.types import StrokePoint
from inkpipe.correction.pressure import correct_pressure
from inkpipe.correction.smoothing import apply_coordinate_smoothing

log = logging.getLogger("inkpipe.correction")

C = TypeVar("C")
CorrectionStage = Callable[[StrokePoint, Sequence[StrokePoint], C], List[StrokePoint]]


@dataclass(frozen=True)
class StageTimings:
    pressure_ms: float = 0.0
    smoothing_ms: float = 0.0
    total_ms: float = 0.0


@dataclass(frozen=True)
class CorrectionQuality:
    smoothness_improvement: float
    pressure_stability: float
    data_fidelity: float
    processing_ratio: float


def run_stage(
    name: str, stage: CorrectionStage, current: StrokePoint, history: Sequence[StrokePoint], cfg
) -> Tuple[List[StrokePoint], float]:
    """Run one stage, timing it. On failure: warn and return [current]."""
    start = time.perf_counter()
    try:
        out = stage(current, history, cfg)
    except Exception:
        log.warning("%s stage failed, passing point through", name, exc_info=True)
        out = [current]
    return out, (time.perf_counter() - start) * 1000.0


def correct_with_timings(
    current: StrokePoint, history: Sequence[StrokePoint], cfg: CorrectionConfig
) -> Tuple[List[StrokePoint], StageTimings]:
    start = time.perf_counter()
    points = [current]
    pressure_ms = smoothing_ms = 0.0

    if cfg.pressure_correction.enabled:
        points, pressure_ms = run_stage("pressure", correct_pressure, points[0], history, cfg.pressure_correction)

    if cfg.smoothing.enabled and points:
        # smoothing works on the pressure-corrected point
        points, smoothing_ms = run_stage("smoothing", apply_coordinate_smoothing, points[0], history, cfg.smoothing)

    total_ms = (time.perf_counter() - start) * 1000.0
    return points, StageTimings(pressure_ms=pressure_ms, smoothing_ms=smoothing_ms, total_ms=total_ms)


def apply_input_correction(
    current: StrokePoint, history: Sequence[StrokePoint], cfg: CorrectionConfig
) -> List[StrokePoint]:
    points, _ = correct_with_timings(current, history, cfg)
    return points


def apply_input_correction_batch(points: Sequence[StrokePoint], cfg: CorrectionConfig) -> List[StrokePoint]:
    """Correct a finished run of raw points, each against the raw points before it."""
    out: List[StrokePoint] = []
    for i, p in enumerate(points):
        out.extend(apply_input_correction(p, points[:i], cfg))
    return out


# ============================================================
# Quality assessment
# ============================================================

def _smoothness(points: Sequence[StrokePoint]) -> float:
    if len(points) < 3:
        return 1.0
    total = 0.0
    for prev, cur, nxt in zip(points, points[1:], points[2:]):
        a1 = math.atan2(cur.y - prev.y, cur.x - prev.x)
        a2 = math.atan2(nxt.y - cur.y, nxt.x - cur.x)
        d = abs(a2 - a1)
        if d > math.pi:
            d = 2 * math.pi - d
        total += d
    return 1.0 / (1.0 + total / len(points))


def _pressure_spread(points: Sequence[StrokePoint]) -> float:
    if len(points) < 2:
        return 0.0
    mean = sum(p.pressure for p in points) / len(points)
    return math.sqrt(sum((p.pressure - mean) ** 2 for p in points) / len(points))


def _similarity(original: Sequence[StrokePoint], corrected: Sequence[StrokePoint], max_dist: float = 50.0) -> float:
    if not original or not corrected:
        return 0.0
    n = min(len(original), len(corrected), 20)
    total = 0.0
    for i in range(n):
        a = original[i * len(original) // n]
        b = corrected[i * len(corrected) // n]
        total += math.hypot(a.x - b.x, a.y - b.y)
    return max(0.0, 1.0 - (total / n) / max_dist)


def assess_correction_quality(
    original: Sequence[StrokePoint], corrected: Sequence[StrokePoint]
) -> CorrectionQuality:
    if not original:
        return CorrectionQuality(0.0, 0.0, 0.0, 0.0)

    s0 = _smoothness(original)
    s1 = _smoothness(corrected)
    v0 = _pressure_spread(original)
    v1 = _pressure_spread(corrected)

    return CorrectionQuality(
        smoothness_improvement=(s1 - s0) / s0 if s0 > 0 else 0.0,
        pressure_stability=1.0 - v1 / v0 if v0 > 0 else 0.0,
        data_fidelity=_similarity(original, corrected),
        processing_ratio=len(corrected) / len(original),
    )
