from __future__ import annotations

from typing import Callable, Optional

from inkpipe.core.config import DevicePreset
from inkpipe.core.coordinates import CoordinateTransform
from inkpipe.core.timers import now_ms
from inkpipe.core.types import (
    CanvasDisplay, DeviceClass, EventKind, NormalizedInputEvent, Point2,
    RawPointerSample, StrokePoint, Tilt, ViewTransformState, clamp01,
)

NEUTRAL_PRESSURE = 0.5

DeviceLookup = Callable[[RawPointerSample], str]


def normalize_pressure(pressure: Optional[float]) -> float:
    """
    Clamp to [0, 1].

    Devices without pressure report 0 (or nothing); those strokes must stay
    visible, so 0 and None both become 0.5.
    """
    if pressure is None:
        return NEUTRAL_PRESSURE
    p = clamp01(float(pressure))
    return NEUTRAL_PRESSURE if p == 0.0 else p


def device_class(pointer_type: str) -> DeviceClass:
    if pointer_type == "pen":
        return DeviceClass.PEN
    if pointer_type == "touch":
        return DeviceClass.TOUCH
    return DeviceClass.MOUSE


def extract_tilt(sample: RawPointerSample) -> Optional[Tilt]:
    if sample.tilt_x is None or sample.tilt_y is None:
        return None
    if sample.tilt_x == 0 and sample.tilt_y == 0:
        return None
    return Tilt(x=float(sample.tilt_x), y=float(sample.tilt_y))


def has_pressure_capability(sample: RawPointerSample) -> bool:
    """0 and exactly 0.5 are what pressure-less devices report."""
    return sample.pressure is not None and sample.pressure > 0 and sample.pressure != NEUTRAL_PRESSURE


# ============================================================
# Device capability lookup
# ============================================================

def make_device_lookup(platform: str = "") -> DeviceLookup:
    """
    Map a raw sample to a calibration id.

    The heuristics are platform dependent (iPad pens are Apple Pencils, a pen
    that reports tilt elsewhere is most likely a Wacom); swap the lookup per
    target instead of touching the correction code.
    """
    platform = platform.lower()
    apple = "ipad" in platform or "iphone" in platform

    def lookup(sample: RawPointerSample) -> str:
        if sample.pointer_type != "pen":
            return DevicePreset.GENERIC.value
        if apple:
            return DevicePreset.APPLE_PENCIL.value
        if has_pressure_capability(sample) and sample.tilt_x is not None:
            return DevicePreset.WACOM.value
        return DevicePreset.GENERIC.value

    return lookup


generic_device_lookup: DeviceLookup = make_device_lookup("")


# ============================================================
# Normalization
# ============================================================

def normalize_with_transform(
    sample: RawPointerSample,
    kind: EventKind,
    transform: CoordinateTransform,
    device_lookup: DeviceLookup = generic_device_lookup,
) -> NormalizedInputEvent:
    """
    Raw sample -> canonical event using an existing transform.

    The pointer lands in the displayed (view) box; the inverse view
    transform takes it back to canvas space. With the identity view this is
    plain pointer->canvas scaling.
    """
    shown = transform.pointer_to_canvas(Point2(sample.x, sample.y))
    canvas = transform.view_to_canvas(shown)

    t_ms = sample.t_ms if sample.t_ms is not None else now_ms()
    return NormalizedInputEvent(
        point=StrokePoint(x=canvas.x, y=canvas.y, pressure=normalize_pressure(sample.pressure), t_ms=t_ms),
        kind=kind,
        device=device_class(sample.pointer_type),
        buttons=sample.buttons,
        tilt=extract_tilt(sample),
        device_id=device_lookup(sample),
    )


def normalize_event(
    sample: RawPointerSample,
    kind: EventKind,
    display: CanvasDisplay,
    view: ViewTransformState | None = None,
    device_lookup: DeviceLookup = generic_device_lookup,
) -> NormalizedInputEvent:
    """Stateless form: builds the transform from the supplied display/view context."""
    return normalize_with_transform(sample, kind, CoordinateTransform(display, view), device_lookup)
