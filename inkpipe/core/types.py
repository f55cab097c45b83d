"""
inkpipe: CORE CONTRACTS

Shared data types for every pipeline stage.

Coordinate spaces are never mixed implicitly. A value only moves between
spaces through CoordinateTransform.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple


# ============================================================
# Geometry
# ============================================================

@dataclass(frozen=True)
class Point2:
    """A 2D point in one coordinate space (pointer, canvas, view or render)."""
    x: float
    y: float

    def __iter__(self):
        return iter((self.x, self.y))


@dataclass(frozen=True)
class ViewTransformState:
    """
    Zoom / pan / rotation applied on top of canvas space.

    pan_offset is expressed in canvas units, rotation in radians.
    """
    zoom: float = 1.0
    pan_offset: Point2 = Point2(0.0, 0.0)
    rotation: float = 0.0


@dataclass(frozen=True)
class CanvasDisplay:
    """
    On-screen size of the drawing surface and its fixed logical size.

    display_* are pointer-space pixels, logical_* are canvas units.
    """
    display_width: float
    display_height: float
    logical_width: float = 1024.0
    logical_height: float = 1024.0


# ============================================================
# Device → Normalizer
# ============================================================

class EventKind(str, Enum):
    START = "start"
    MOVE = "move"
    END = "end"
    CANCEL = "cancel"

    @property
    def terminal(self) -> bool:
        return self in (EventKind.END, EventKind.CANCEL)


class DeviceClass(str, Enum):
    MOUSE = "mouse"
    PEN = "pen"
    TOUCH = "touch"


@dataclass(frozen=True)
class Tilt:
    """Pen tilt in degrees. Only present for pens that report it."""
    x: float
    y: float


@dataclass(frozen=True)
class RawPointerSample:
    """
    One sample as delivered by the host's device plumbing.

    x / y are offsets inside the drawing surface in display pixels.
    pressure is None when the device does not report it.
    t_ms is a monotonic timestamp; None means "stamp it on arrival".
    """
    x: float
    y: float
    pointer_type: str = "mouse"
    pressure: Optional[float] = None
    t_ms: Optional[float] = None
    buttons: Optional[int] = None
    tilt_x: Optional[float] = None
    tilt_y: Optional[float] = None


# ============================================================
# Normalizer → Throttler → Corrector → Consumer
# ============================================================

@dataclass(frozen=True)
class StrokePoint:
    """
    Canonical sample: canvas-space position, pressure in [0, 1], monotonic ms.

    Stages never mutate a StrokePoint; they return new ones.
    """
    x: float
    y: float
    pressure: float
    t_ms: float


@dataclass(frozen=True)
class NormalizedInputEvent:
    """A canonical sample plus what kind of event it is and where it came from."""
    point: StrokePoint
    kind: EventKind
    device: DeviceClass = DeviceClass.MOUSE
    buttons: Optional[int] = None
    tilt: Optional[Tilt] = None
    device_id: str = "generic"

    @property
    def x(self) -> float:
        return self.point.x

    @property
    def y(self) -> float:
        return self.point.y

    @property
    def pressure(self) -> float:
        return self.point.pressure

    @property
    def t_ms(self) -> float:
        return self.point.t_ms

    def with_point(self, point: StrokePoint, kind: Optional[EventKind] = None) -> "NormalizedInputEvent":
        return replace(self, point=point, kind=kind or self.kind)


Matrix9 = Tuple[float, float, float, float, float, float, float, float, float]


# ============================================================
# Errors
# ============================================================

class CoordinateTransformError(Exception):
    """
    A coordinate conversion failed because an underlying matrix is unusable.

    This is a configuration fault (degenerate display size, zero zoom) and is
    meant to surface, not to be retried.
    """

    def __init__(self, message: str, direction: str, source: object = None):
        super().__init__(message)
        self.direction = direction
        self.source = source


class DisplayUnavailableError(ValueError):
    """The pipeline was built without a usable display target."""


def clamp01(x: float) -> float:
    if x < 0.0:
        return 0.0
    if x > 1.0:
        return 1.0
    return x


def clamp(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x
