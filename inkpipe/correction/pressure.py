"""
Pressure correction stage.

    raw ──► calibration ──► temporal smoothing ──► noise filter ──► clamp

Every step is a pure function of the current value, the stroke history and
the stage config.
"""

from __future__ import annotations

from dataclasses import replace
from typing import List, Sequence

from inkpipe.core.config import PressureCorrectionConfig
from inkpipe.core.types import StrokePoint, clamp01

NO_SIGNAL_PRESSURE = 0.5
CURRENT_WEIGHT = 1.5


def apply_device_calibration(pressure: float, cfg: PressureCorrectionConfig) -> float:
    # 0.5 and <= 0 are what pressure-less devices report
    if pressure == NO_SIGNAL_PRESSURE or pressure <= 0:
        return cfg.fallback_pressure
    return pressure * cfg.device_calibration.get(cfg.active_device, 1.0)


def apply_temporal_smoothing(
    pressure: float, history: Sequence[StrokePoint], cfg: PressureCorrectionConfig
) -> float:
    """
    Recency-weighted mean of the last `smoothing_window` pressures, plus the
    current value at 1.5x the heaviest historical weight.
    """
    n = min(cfg.smoothing_window, len(history))
    if n <= 0:
        return pressure

    recent = history[-n:]
    total = 0.0
    weights = 0.0
    for i, p in enumerate(recent):
        w = (i + 1) / n
        total += p.pressure * w
        weights += w

    total += pressure * CURRENT_WEIGHT
    weights += CURRENT_WEIGHT
    return total / weights


def apply_noise_filter(
    pressure: float, history: Sequence[StrokePoint], cfg: PressureCorrectionConfig
) -> float:
    if not history:
        return pressure
    last = history[-1].pressure
    if abs(pressure - last) < cfg.min_pressure_change:
        return last
    return pressure


def correct_pressure(
    current: StrokePoint, history: Sequence[StrokePoint], cfg: PressureCorrectionConfig
) -> List[StrokePoint]:
    if not cfg.enabled:
        return [current]

    p = apply_device_calibration(current.pressure, cfg)
    p = apply_temporal_smoothing(p, history, cfg)
    p = apply_noise_filter(p, history, cfg)
    return [replace(current, pressure=clamp01(p))]


def correct_pressure_batch(points: Sequence[StrokePoint], cfg: PressureCorrectionConfig) -> List[StrokePoint]:
    """Correct a finished run of points, each against the already-corrected ones."""
    if not cfg.enabled:
        return list(points)

    out: List[StrokePoint] = []
    for p in points:
        out.extend(correct_pressure(p, out, cfg))
    return out
