"""
Coordinate smoothing stage.

The stage smooths the window history + [current] and returns only the
points that are new relative to the history: usually just the (possibly
moved) current point, sometimes interpolated points in front of it.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import replace
from typing import List, Sequence

from inkpipe.core.config import SmoothingConfig, SmoothingMethod
from inkpipe.core.types import StrokePoint
from inkpipe.correction.splines import (
    adaptive_smoothing, catmull_rom_newest_segment, catmull_rom_spline,
    linear_smoothing, resample_like, to_point, to_vec,
)

log = logging.getLogger("inkpipe.smoothing")

FAST_STRENGTH_FACTOR = 0.3
CORNER_ANGLE = math.pi / 3


def _new_points(smoothed: List[StrokePoint], history_len: int, current: StrokePoint) -> List[StrokePoint]:
    n = len(smoothed) - history_len
    return smoothed[-n:] if n > 0 else [current]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


def smooth_linear(points: Sequence[StrokePoint], cfg: SmoothingConfig) -> List[StrokePoint]:
    if len(points) < 2:
        return list(points)
    vecs = linear_smoothing([to_vec(p) for p in points], cfg.strength)
    return [to_point(v, p.pressure, p.t_ms) for v, p in zip(vecs, points)]


def smooth_catmull_realtime(points: Sequence[StrokePoint], cfg: SmoothingConfig) -> List[StrokePoint]:
    """Insert 1-2 spline points on the newest segment, just before the newest sample."""
    if len(points) < 4:
        return smooth_linear(points, cfg)

    resolution = 2 if cfg.strength > 0.5 else 1
    extra = catmull_rom_newest_segment([to_vec(p) for p in points], resolution)
    if not extra:
        return list(points)

    prev, cur = points[-2], points[-1]
    inserted = []
    for i, v in enumerate(extra):
        t = (i + 1) / (len(extra) + 1)
        inserted.append(to_point(
            v,
            prev.pressure + (cur.pressure - prev.pressure) * t,
            prev.t_ms + (cur.t_ms - prev.t_ms) * t,
        ))
    return list(points[:-1]) + inserted + [cur]


def smooth_catmull_quality(points: Sequence[StrokePoint], cfg: SmoothingConfig) -> List[StrokePoint]:
    """Dense spline over the whole window; resolution grows with strength."""
    if len(points) < 4:
        return smooth_linear(points, cfg)
    resolution = max(2, int(4 * cfg.strength))
    return resample_like(points, catmull_rom_spline([to_vec(p) for p in points], resolution))


def smooth_fast(points: Sequence[StrokePoint], cfg: SmoothingConfig) -> List[StrokePoint]:
    """Budget fallback: nudge only the newest point toward the mean of the last three."""
    if len(points) < 3:
        return list(points)

    a, b, c = points[-3], points[-2], points[-1]
    w = cfg.strength * FAST_STRENGTH_FACTOR
    mx = (a.x + b.x + c.x) / 3.0
    my = (a.y + b.y + c.y) / 3.0
    return list(points[:-1]) + [replace(c, x=c.x + (mx - c.x) * w, y=c.y + (my - c.y) * w)]


def _smooth_realtime(points: Sequence[StrokePoint], cfg: SmoothingConfig) -> List[StrokePoint]:
    if cfg.method == SmoothingMethod.LINEAR or len(points) < 4:
        return smooth_linear(points, cfg)
    return smooth_catmull_realtime(points, cfg)


def _smooth_quality(points: Sequence[StrokePoint], cfg: SmoothingConfig) -> List[StrokePoint]:
    if cfg.method == SmoothingMethod.LINEAR:
        return smooth_linear(points, cfg)
    return smooth_catmull_quality(points, cfg)


def apply_coordinate_smoothing(
    current: StrokePoint, history: Sequence[StrokePoint], cfg: SmoothingConfig
) -> List[StrokePoint]:
    if not cfg.enabled or cfg.strength <= 0:
        return [current]
    if cfg.method == SmoothingMethod.ADAPTIVE:
        return apply_adaptive_smoothing(current, history, cfg)

    points = list(history) + [current]
    if len(points) < cfg.min_points:
        return [current]

    start = time.perf_counter()
    try:
        if cfg.realtime_mode:
            smoothed = _smooth_realtime(points, cfg)
        else:
            smoothed = _smooth_quality(points, cfg)

        took = _elapsed_ms(start)
        if took > cfg.max_processing_time_ms:
            log.debug("smoothing took %.3fms (budget %.3fms), using fast blend", took, cfg.max_processing_time_ms)
            smoothed = smooth_fast(points, cfg)
    except Exception as e:
        log.warning("smoothing failed, passing point through: %s", e)
        return [current]

    return _new_points(smoothed, len(history), current)


def apply_adaptive_smoothing(
    current: StrokePoint, history: Sequence[StrokePoint], cfg: SmoothingConfig
) -> List[StrokePoint]:
    if not cfg.enabled:
        return [current]

    points = list(history) + [current]
    if len(points) < cfg.min_points:
        return [current]

    smoothed = adaptive_smoothing(points, cfg.max_processing_time_ms, cfg.adaptive_speed_threshold)
    return _new_points(smoothed, len(history), current)


def _turn_angle(prev: StrokePoint, cur: StrokePoint, nxt: StrokePoint) -> float:
    a1 = math.atan2(cur.y - prev.y, cur.x - prev.x)
    a2 = math.atan2(nxt.y - cur.y, nxt.x - cur.x)
    d = abs(a2 - a1)
    return 2 * math.pi - d if d > math.pi else d


def preserve_edges(points: Sequence[StrokePoint], cfg: SmoothingConfig) -> List[StrokePoint]:
    """
    Smooth corners sharper than 60 degrees with reduced strength: the sharper
    the turn, the less the corner moves.
    """
    if len(points) < 3:
        return list(points)

    out = list(points)
    for i in range(1, len(points) - 1):
        prev, cur, nxt = points[i - 1], points[i], points[i + 1]
        angle = _turn_angle(prev, cur, nxt)
        if angle <= CORNER_ANGLE:
            continue
        keep = 1.0 - (angle - CORNER_ANGLE) / (math.pi - CORNER_ANGLE)
        reduced = replace(cfg, strength=cfg.strength * keep)
        out[i] = smooth_linear([prev, cur, nxt], reduced)[1]
    return out

