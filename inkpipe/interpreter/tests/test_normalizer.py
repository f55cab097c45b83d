import pytest

from inkpipe.core.types import CanvasDisplay, DeviceClass, EventKind, RawPointerSample, ViewTransformState
from inkpipe.interpreter.normalizer import (
    device_class, extract_tilt, has_pressure_capability, make_device_lookup, normalize_event,
    normalize_pressure,
)

DISPLAY = CanvasDisplay(512, 512)


def sample(x=256, y=256, pointer_type="mouse", pressure=None, t=10.0, **kw):
    return RawPointerSample(x=x, y=y, pointer_type=pointer_type, pressure=pressure, t_ms=t, **kw)


@pytest.mark.parametrize("raw,expected", [
    (None, 0.5),
    (0.0, 0.5),
    (-0.2, 0.5),
    (0.3, 0.3),
    (1.0, 1.0),
    (1.7, 1.0),
])
def test_normalize_pressure(raw, expected):
    assert normalize_pressure(raw) == expected


def test_device_class_mapping():
    assert device_class("pen") == DeviceClass.PEN
    assert device_class("touch") == DeviceClass.TOUCH
    assert device_class("mouse") == DeviceClass.MOUSE
    assert device_class("stylus-ish") == DeviceClass.MOUSE


def test_tilt_only_when_meaningful():
    assert extract_tilt(sample()) is None
    assert extract_tilt(sample(tilt_x=0, tilt_y=0)) is None
    assert extract_tilt(sample(tilt_x=12, tilt_y=None)) is None

    tilt = extract_tilt(sample(tilt_x=0, tilt_y=-5))
    assert (tilt.x, tilt.y) == (0.0, -5.0)


def test_normalize_event_maps_into_canvas():
    ev = normalize_event(sample(128, 384, pressure=0.0), EventKind.START, DISPLAY)
    assert (ev.x, ev.y) == pytest.approx((256, 768))
    assert ev.pressure == 0.5
    assert ev.kind == EventKind.START
    assert ev.t_ms == 10.0
    assert ev.tilt is None


def test_normalize_event_undoes_view():
    view = ViewTransformState(zoom=2.0)
    # pointer center -> displayed (512, 612) -> canvas (512, 562)
    ev = normalize_event(sample(256, 306), EventKind.MOVE, DISPLAY, view)
    assert (ev.x, ev.y) == pytest.approx((512, 562))


def test_normalize_event_stamps_missing_time():
    ev = normalize_event(sample(t=None), EventKind.MOVE, DISPLAY)
    assert ev.t_ms > 0


def test_pen_fields_carried():
    ev = normalize_event(
        sample(pointer_type="pen", pressure=0.42, buttons=1, tilt_x=10, tilt_y=3), EventKind.MOVE, DISPLAY,
        device_lookup=make_device_lookup("linux"),
    )
    assert ev.device == DeviceClass.PEN
    assert ev.buttons == 1
    assert ev.tilt is not None
    assert ev.device_id == "wacom"


def test_device_lookup_is_platform_specific():
    pen = sample(pointer_type="pen", pressure=0.6)
    assert make_device_lookup("iPad")(pen) == "apple-pencil"
    assert make_device_lookup("linux")(pen) == "generic"
    assert make_device_lookup("iPad")(sample()) == "generic"


def test_pressure_capability():
    assert has_pressure_capability(sample(pressure=0.7))
    assert not has_pressure_capability(sample(pressure=0.5))
    assert not has_pressure_capability(sample(pressure=0.0))
    assert not has_pressure_capability(sample())
