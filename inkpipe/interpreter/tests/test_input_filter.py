from inkpipe.core.config import InputFilterConfig
from inkpipe.core.types import EventKind, NormalizedInputEvent, StrokePoint
from inkpipe.interpreter.input_filter import is_duplicate_event, is_minimal_pressure_change, passes_filter


def ev(x, y, p, kind=EventKind.MOVE, t=0.0):
    return NormalizedInputEvent(point=StrokePoint(x=x, y=y, pressure=p, t_ms=t), kind=kind)


def test_duplicate_needs_same_kind_position_and_pressure():
    last = ev(10, 10, 0.40)
    assert is_duplicate_event(ev(10, 10, 0.405), last, 0.01)
    assert not is_duplicate_event(ev(10, 10, 0.45), last, 0.01)
    assert not is_duplicate_event(ev(10, 11, 0.40), last, 0.01)
    assert not is_duplicate_event(ev(10, 10, 0.40, kind=EventKind.END), last, 0.01)
    assert not is_duplicate_event(ev(10, 10, 0.40), None, 0.01)


def test_minimal_pressure_change_skips_neutral_pairs():
    assert is_minimal_pressure_change(ev(10, 10, 0.401), ev(0, 0, 0.4), 0.01)
    assert not is_minimal_pressure_change(ev(10, 10, 0.5), ev(0, 0, 0.5), 0.01)
    assert not is_minimal_pressure_change(ev(10, 10, 0.401, kind=EventKind.END), ev(0, 0, 0.4), 0.01)


def test_default_filter_only_drops_duplicates():
    cfg = InputFilterConfig()
    last = ev(10, 10, 0.4)
    assert not passes_filter(ev(10, 10, 0.4), last, cfg)
    # steady pressure, new position
    assert passes_filter(ev(12, 10, 0.4), last, cfg)


def test_pressure_only_filter_when_enabled():
    cfg = InputFilterConfig(filter_pressure_only_changes=True)
    assert not passes_filter(ev(12, 10, 0.4), ev(10, 10, 0.4), cfg)
    assert passes_filter(ev(12, 10, 0.5), ev(10, 10, 0.5), cfg)
    assert passes_filter(ev(12, 10, 0.6), ev(10, 10, 0.4), cfg)


def test_start_and_terminal_always_pass():
    cfg = InputFilterConfig(filter_pressure_only_changes=True)
    last = ev(10, 10, 0.4, kind=EventKind.START)
    for kind in (EventKind.START, EventKind.END, EventKind.CANCEL):
        assert passes_filter(ev(10, 10, 0.4, kind=kind), last, cfg)
