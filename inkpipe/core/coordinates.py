"""
Coordinate spaces and the transforms between them.

    pointer:  display pixels inside the drawing surface, y down
    canvas:   fixed logical box 0..1024 on both axes, y down
    view:     canvas after pan → rotate → zoom (about the canvas center)
    render:   [-1, 1]² box for the GPU, y up

Every matrix is rebuilt from the display / view parameters whenever they
change. Nothing is updated incrementally.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from inkpipe.core.matrix import Matrix3x3
from inkpipe.core.types import (
    CanvasDisplay, CoordinateTransformError, Point2, ViewTransformState, clamp,
)

CANVAS_SIZE = 1024.0
CANVAS_CENTER = Point2(CANVAS_SIZE / 2.0, CANVAS_SIZE / 2.0)


@dataclass(frozen=True)
class TransformMatrices:
    """Debug snapshot of the forward matrices."""
    pointer_to_canvas: Matrix3x3
    canvas_to_render: Matrix3x3
    canvas_to_view: Matrix3x3


# ============================================================
# Matrix builders (pure)
# ============================================================

def pointer_canvas_matrices(display: CanvasDisplay) -> Tuple[Matrix3x3, Matrix3x3]:
    """(pointer→canvas, canvas→pointer). Raises SingularMatrixError for a zero-size display."""
    # Built from the canvas side so a zero-size display is a singular matrix
    # rather than a division by zero.
    canvas_to_pointer = Matrix3x3.scale(
        display.display_width / display.logical_width,
        display.display_height / display.logical_height,
    )
    return canvas_to_pointer.inverse(), canvas_to_pointer


def canvas_render_matrices(display: CanvasDisplay) -> Tuple[Matrix3x3, Matrix3x3]:
    """(canvas→render, render→canvas)."""
    # render_x = canvas_x * 2/W - 1 ; render_y = 1 - canvas_y * 2/H
    canvas_to_render = Matrix3x3.translation(-1.0, 1.0).multiply(
        Matrix3x3.scale(2.0 / display.logical_width, -2.0 / display.logical_height)
    )
    return canvas_to_render, canvas_to_render.inverse()


def canvas_view_matrices(display: CanvasDisplay, view: ViewTransformState) -> Tuple[Matrix3x3, Matrix3x3]:
    """(canvas→view, view→canvas). view = Zoom · Rotate · Pan."""
    cx = display.logical_width / 2.0
    cy = display.logical_height / 2.0

    pan = Matrix3x3.translation(view.pan_offset.x, view.pan_offset.y)
    rotate = Matrix3x3.rotation_around(view.rotation, cx, cy)
    zoom = (Matrix3x3.translation(cx, cy)
            .multiply(Matrix3x3.scale(view.zoom, view.zoom))
            .multiply(Matrix3x3.translation(-cx, -cy)))

    canvas_to_view = zoom.multiply(rotate).multiply(pan)
    return canvas_to_view, canvas_to_view.inverse()


# ============================================================
# Validation
# ============================================================

def is_valid_canvas_point(p: Point2, size: float = CANVAS_SIZE) -> bool:
    return 0.0 <= p.x <= size and 0.0 <= p.y <= size


def is_valid_render_point(p: Point2) -> bool:
    return -1.0 <= p.x <= 1.0 and -1.0 <= p.y <= 1.0


# ============================================================
# Stateful transform owner
# ============================================================

class CoordinateTransform:
    """
    Owns the forward/inverse matrix pairs for one drawing surface.

    Canvas results clamp to [0, logical size], render results to [-1, 1].
    Pointer and view results are not clamped: view space legitimately grows
    past the canvas box when zoomed in.
    """

    def __init__(self, display: CanvasDisplay, view: ViewTransformState | None = None) -> None:
        self.display = display
        self.view = view or ViewTransformState()

        self._pointer_to_canvas = Matrix3x3()
        self._canvas_to_pointer = Matrix3x3()
        self._canvas_to_render = Matrix3x3()
        self._render_to_canvas = Matrix3x3()
        self._canvas_to_view = Matrix3x3()
        self._view_to_canvas = Matrix3x3()

        self._rebuild_all()

    # ---- context updates ----

    def update_display(self, display: CanvasDisplay) -> None:
        self.display = display
        self._rebuild_all()

    def update_view_transform(self, view: ViewTransformState) -> None:
        self.view = view
        self._rebuild_view()

    # ---- conversions ----

    def pointer_to_canvas(self, p: Point2) -> Point2:
        return self._apply(self._pointer_to_canvas, p, "pointer-to-canvas", self._clamp_canvas)

    def canvas_to_pointer(self, p: Point2) -> Point2:
        return self._apply(self._canvas_to_pointer, p, "canvas-to-pointer", None)

    def canvas_to_render(self, p: Point2) -> Point2:
        return self._apply(self._canvas_to_render, p, "canvas-to-render", _clamp_render)

    def render_to_canvas(self, p: Point2) -> Point2:
        return self._apply(self._render_to_canvas, p, "render-to-canvas", self._clamp_canvas)

    def canvas_to_view(self, p: Point2) -> Point2:
        return self._apply(self._canvas_to_view, p, "canvas-to-view", None)

    def view_to_canvas(self, p: Point2) -> Point2:
        return self._apply(self._view_to_canvas, p, "view-to-canvas", self._clamp_canvas)

    def matrices(self) -> TransformMatrices:
        return TransformMatrices(
            pointer_to_canvas=self._pointer_to_canvas.clone(),
            canvas_to_render=self._canvas_to_render.clone(),
            canvas_to_view=self._canvas_to_view.clone(),
        )

    # ---- internals ----

    def _apply(self, m: Matrix3x3, p: Point2, direction: str, clamp_fn) -> Point2:
        try:
            out = m.transform_point(p.x, p.y)
        except ArithmeticError as e:
            raise CoordinateTransformError(
                f"failed to transform {direction}: {e}", direction=direction, source=p
            ) from e
        return clamp_fn(out) if clamp_fn else out

    def _clamp_canvas(self, p: Point2) -> Point2:
        return Point2(clamp(p.x, 0.0, self.display.logical_width),
                      clamp(p.y, 0.0, self.display.logical_height))

    def _rebuild_all(self) -> None:
        try:
            self._pointer_to_canvas, self._canvas_to_pointer = pointer_canvas_matrices(self.display)
        except ArithmeticError as e:
            raise CoordinateTransformError(
                f"cannot build pointer/canvas transform: {e}", direction="pointer-to-canvas", source=self.display
            ) from e
        try:
            self._canvas_to_render, self._render_to_canvas = canvas_render_matrices(self.display)
        except ArithmeticError as e:
            raise CoordinateTransformError(
                f"cannot build canvas/render transform: {e}", direction="canvas-to-render", source=self.display
            ) from e
        self._rebuild_view()

    def _rebuild_view(self) -> None:
        try:
            self._canvas_to_view, self._view_to_canvas = canvas_view_matrices(self.display, self.view)
        except ArithmeticError as e:
            raise CoordinateTransformError(
                f"cannot build canvas/view transform: {e}", direction="canvas-to-view", source=self.view
            ) from e


def _clamp_render(p: Point2) -> Point2:
    return Point2(clamp(p.x, -1.0, 1.0), clamp(p.y, -1.0, 1.0))
