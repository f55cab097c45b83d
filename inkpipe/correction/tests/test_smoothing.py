import logging
import math

import pytest

from inkpipe.core.config import SmoothingConfig, SmoothingMethod
from inkpipe.core.types import StrokePoint
from inkpipe.correction import smoothing
from inkpipe.correction.smoothing import apply_coordinate_smoothing, preserve_edges

# generous budget so the time check never kicks in
ROOMY = dict(max_processing_time_ms=1000.0)


def pts(coords, dt=10.0, p=0.5):
    return [StrokePoint(x=x, y=y, pressure=p, t_ms=i * dt) for i, (x, y) in enumerate(coords)]


def split(coords, **kw):
    points = pts(coords, **kw)
    return points[-1], points[:-1]


@pytest.mark.parametrize("cfg", [
    SmoothingConfig(strength=0.0),
    SmoothingConfig(enabled=False),
    SmoothingConfig(enabled=False, method=SmoothingMethod.CATMULL_ROM, strength=1.0),
])
def test_disabled_or_zero_strength_is_identity(cfg):
    cur, history = split([(0, 0), (5, 9), (1, 2), (7, 7), (3, 3)])
    assert apply_coordinate_smoothing(cur, history, cfg) == [cur]


def test_min_points_gate():
    cur, history = split([(0, 0), (5, 9), (1, 2)])
    cfg = SmoothingConfig(min_points=5, method=SmoothingMethod.CATMULL_ROM, strength=1.0, **ROOMY)
    assert apply_coordinate_smoothing(cur, history, cfg) == [cur]


def test_linear_realtime_leaves_newest_point():
    cur, history = split([(0, 0), (5, 9), (1, 2), (7, 7)])
    out = apply_coordinate_smoothing(cur, history, SmoothingConfig(strength=0.8, **ROOMY))
    assert out == [cur]


def test_catmull_realtime_inserts_before_current():
    cur, history = split([(0, 0), (1, 0), (2, 0), (3, 0)], p=0.4)
    cur = StrokePoint(x=3, y=0, pressure=1.0, t_ms=30)

    cfg = SmoothingConfig(method=SmoothingMethod.CATMULL_ROM, strength=0.6, **ROOMY)
    out = apply_coordinate_smoothing(cur, history, cfg)

    assert len(out) == 3
    assert out[-1] == cur
    assert [p.x for p in out[:2]] == pytest.approx([7 / 3, 8 / 3])
    assert [p.pressure for p in out[:2]] == pytest.approx([0.6, 0.8])
    assert [p.t_ms for p in out[:2]] == pytest.approx([70 / 3, 80 / 3])


def test_catmull_realtime_low_strength_inserts_one():
    cur, history = split([(0, 0), (1, 0), (2, 0), (3, 0)])
    cfg = SmoothingConfig(method=SmoothingMethod.CATMULL_ROM, strength=0.4, **ROOMY)
    out = apply_coordinate_smoothing(cur, history, cfg)
    assert [p.x for p in out] == pytest.approx([2.5, 3.0])


def test_catmull_realtime_short_history_falls_back_to_linear():
    cur, history = split([(0, 0), (1, 5), (2, 0)])
    cfg = SmoothingConfig(method=SmoothingMethod.CATMULL_ROM, strength=0.6, **ROOMY)
    assert apply_coordinate_smoothing(cur, history, cfg) == [cur]


def test_catmull_quality_returns_tail_of_dense_spline():
    cur, history = split([(0, 0), (1, 1), (2, 0), (3, 1), (4, 0), (5, 1)])
    cfg = SmoothingConfig(method=SmoothingMethod.CATMULL_ROM, realtime_mode=False, strength=0.5, **ROOMY)
    out = apply_coordinate_smoothing(cur, history, cfg)
    # 6 points at resolution 2 -> 7 spline points, 5 of them already in history
    assert len(out) == 2
    assert (out[-1].x, out[-1].y) == (5, 1)
    assert out[-1].pressure == cur.pressure


def test_budget_overrun_uses_fast_blend():
    cur, history = split([(0, 0), (3, 0), (6, 3)])
    cfg = SmoothingConfig(strength=1.0, max_processing_time_ms=-1.0)
    [out] = apply_coordinate_smoothing(cur, history, cfg)
    # pulled 30% toward the mean of the last three points, (3, 1)
    assert (out.x, out.y) == pytest.approx((5.1, 2.4))
    assert out.pressure == cur.pressure


def test_adaptive_method_dispatch():
    cur, history = split([(0, 0), (1, 0), (2, 1), (3, 1), (4, 2), (5, 2)], dt=100)
    cfg = SmoothingConfig(method=SmoothingMethod.ADAPTIVE, strength=0.5, **ROOMY)
    out = apply_coordinate_smoothing(cur, history, cfg)
    assert len(out) == 2
    assert (out[-1].x, out[-1].y) == (5, 2)


def test_failure_passes_point_through(monkeypatch, caplog):
    def boom(points, cfg):
        raise RuntimeError("spline exploded")

    monkeypatch.setattr(smoothing, "_smooth_realtime", boom)
    cur, history = split([(0, 0), (1, 0), (2, 0)])

    with caplog.at_level(logging.WARNING, logger="inkpipe.smoothing"):
        out = apply_coordinate_smoothing(cur, history, SmoothingConfig(**ROOMY))

    assert out == [cur]
    assert "spline exploded" in caplog.text


def test_preserve_edges_softens_sharp_corners_less():
    corner = pts([(0, 0), (10, 0), (10, 10)])
    cfg = SmoothingConfig(strength=0.4)
    out = preserve_edges(corner, cfg)

    # 90 degree turn: strength scaled by 0.75
    keep = 1 - (math.pi / 2 - math.pi / 3) / (math.pi - math.pi / 3)
    s = 0.4 * keep
    assert (out[1].x, out[1].y) == pytest.approx((10 + (5 - 10) * s, 5 * s))
    assert out[0] == corner[0]
    assert out[2] == corner[2]


def test_preserve_edges_leaves_gentle_turns():
    gentle = pts([(0, 0), (10, 0), (20, 2)])
    assert preserve_edges(gentle, SmoothingConfig(strength=0.4)) == gentle
