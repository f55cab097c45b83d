"""
Spline and smoothing math on plain 2D points.

Pure functions; nothing here knows about pressure or time except
adaptive_smoothing, which needs timestamps to estimate speed.
"""

from __future__ import annotations

import math
import time
from typing import List, Sequence

from inkpipe.core.types import Point2, StrokePoint


def to_vec(p: StrokePoint) -> Point2:
    return Point2(p.x, p.y)


def to_point(v: Point2, pressure: float, t_ms: float) -> StrokePoint:
    return StrokePoint(x=v.x, y=v.y, pressure=pressure, t_ms=t_ms)


def lerp(a: Point2, b: Point2, t: float) -> Point2:
    return Point2(a.x + (b.x - a.x) * t, a.y + (b.y - a.y) * t)


def catmull_rom_segment(p0: Point2, p1: Point2, p2: Point2, p3: Point2, t: float) -> Point2:
    """Point on the p1→p2 segment at t in [0, 1] (uniform Catmull-Rom)."""
    t2 = t * t
    t3 = t2 * t

    b0 = -0.5 * t3 + t2 - 0.5 * t
    b1 = 1.5 * t3 - 2.5 * t2 + 1.0
    b2 = -1.5 * t3 + 2.0 * t2 + 0.5 * t
    b3 = 0.5 * t3 - 0.5 * t2

    return Point2(
        b0 * p0.x + b1 * p1.x + b2 * p2.x + b3 * p3.x,
        b0 * p0.y + b1 * p1.y + b2 * p2.y + b3 * p3.y,
    )


def catmull_rom_spline(points: Sequence[Point2], resolution: int = 4) -> List[Point2]:
    """
    Resample every inner segment (points[1]..points[-2]) at `resolution`
    steps, then append the last point. Fewer than 4 points come back as is.
    """
    if len(points) < 4:
        return list(points)

    out: List[Point2] = []
    for i in range(1, len(points) - 2):
        p0, p1, p2, p3 = points[i - 1], points[i], points[i + 1], points[i + 2]
        for j in range(resolution):
            out.append(catmull_rom_segment(p0, p1, p2, p3, j / resolution))
    out.append(points[-1])
    return out


def catmull_rom_newest_segment(points: Sequence[Point2], resolution: int = 2) -> List[Point2]:
    """
    Interior points on the newest segment (points[-2] → points[-1]).

    Only the last three samples are control points; the fourth, past the
    newest sample, is mirrored from the previous one. The plain four-sample
    form (points[-4:]) interpolates points[-3] → points[-2], which would
    put new points behind a sample that was already emitted. Keep the
    mirrored form. Still needs 4 points, like the full spline, so the
    curve has settled before interpolation starts.
    """
    if len(points) < 4:
        return []

    p0, p1, p2 = points[-3], points[-2], points[-1]
    p3 = Point2(2.0 * p2.x - p1.x, 2.0 * p2.y - p1.y)

    return [catmull_rom_segment(p0, p1, p2, p3, i / (resolution + 1)) for i in range(1, resolution + 1)]


def linear_smoothing(points: Sequence[Point2], strength: float = 0.5) -> List[Point2]:
    """Pull each interior point toward its neighbours' midpoint. Endpoints stay put."""
    if len(points) < 2 or strength <= 0:
        return list(points)

    out = list(points)
    for i in range(1, len(points) - 1):
        prev, cur, nxt = points[i - 1], points[i], points[i + 1]
        mid = Point2((prev.x + nxt.x) * 0.5, (prev.y + nxt.y) * 0.5)
        out[i] = lerp(cur, mid, strength)
    return out


def path_length(points: Sequence[Point2]) -> float:
    return sum(math.hypot(b.x - a.x, b.y - a.y) for a, b in zip(points, points[1:]))


def drawing_speed(points: Sequence[StrokePoint], window: int = 4) -> float:
    """Canvas units per second over the last `window` samples (0 if undefined)."""
    recent = list(points[-window:])
    if len(recent) < 2:
        return 0.0
    span_ms = recent[-1].t_ms - recent[0].t_ms
    if span_ms <= 0:
        return 0.0
    return path_length([to_vec(p) for p in recent]) / span_ms * 1000.0


def resample_like(points: Sequence[StrokePoint], vecs: Sequence[Point2]) -> List[StrokePoint]:
    """Attach pressure / time from the proportionally matching source sample."""
    n, m = len(points), len(vecs)
    out = []
    for i, v in enumerate(vecs):
        src = points[min(i * n // m, n - 1)]
        out.append(to_point(v, src.pressure, src.t_ms))
    return out


def adaptive_smoothing(
    points: Sequence[StrokePoint],
    max_processing_time_ms: float = 1.0,
    fast_threshold: float = 100.0,
) -> List[StrokePoint]:
    """
    Fast strokes get linear smoothing (latency first), slow ones a
    Catmull-Rom pass (quality first).
    """
    if len(points) < 2:
        return list(points)

    start = time.perf_counter()

    if drawing_speed(points) > fast_threshold:
        smoothed = linear_smoothing([to_vec(p) for p in points], 0.3)
        return [to_point(v, p.pressure, p.t_ms) for v, p in zip(smoothed, points)]

    # not enough budget left for the spline
    if (time.perf_counter() - start) * 1000.0 > max_processing_time_ms * 0.5:
        return list(points)

    if len(points) >= 4:
        return resample_like(points, catmull_rom_spline([to_vec(p) for p in points], 2))

    return list(points)
