from __future__ import annotations

import math
from dataclasses import dataclass

from inkpipe.core.types import Matrix9, Point2

SINGULAR_EPS = 1e-10
W_EPS = 1e-10


class SingularMatrixError(ArithmeticError):
    """Raised by Matrix3x3.inverse() when |det| is below SINGULAR_EPS."""


@dataclass(frozen=True)
class Matrix3x3:
    """
    Immutable 3x3 homogeneous 2D transform, row-major.

        [ m00 m01 m02 ]
        [ m10 m11 m12 ]
        [ m20 m21 m22 ]

    A.multiply(B) is A·B: applied to a point, B acts first.
    """
    m00: float = 1.0
    m01: float = 0.0
    m02: float = 0.0
    m10: float = 0.0
    m11: float = 1.0
    m12: float = 0.0
    m20: float = 0.0
    m21: float = 0.0
    m22: float = 1.0

    @classmethod
    def from_elements(cls, e) -> "Matrix3x3":
        if len(e) != 9:
            raise ValueError(f"expected 9 elements, got {len(e)}")
        return cls(*(float(v) for v in e))

    @property
    def elements(self) -> Matrix9:
        return (
            self.m00, self.m01, self.m02,
            self.m10, self.m11, self.m12,
            self.m20, self.m21, self.m22,
        )

    # ---- builders ----

    @classmethod
    def identity(cls) -> "Matrix3x3":
        return cls()

    @classmethod
    def translation(cls, tx: float, ty: float) -> "Matrix3x3":
        return cls(1.0, 0.0, tx,
                   0.0, 1.0, ty,
                   0.0, 0.0, 1.0)

    @classmethod
    def scale(cls, sx: float, sy: float | None = None) -> "Matrix3x3":
        if sy is None:
            sy = sx
        return cls(sx, 0.0, 0.0,
                   0.0, sy, 0.0,
                   0.0, 0.0, 1.0)

    @classmethod
    def rotation(cls, theta: float) -> "Matrix3x3":
        c = math.cos(theta)
        s = math.sin(theta)
        return cls(c, -s, 0.0,
                   s, c, 0.0,
                   0.0, 0.0, 1.0)

    @classmethod
    def rotation_around(cls, theta: float, cx: float, cy: float) -> "Matrix3x3":
        # move center to origin, rotate, move back
        return (cls.translation(cx, cy)
                .multiply(cls.rotation(theta))
                .multiply(cls.translation(-cx, -cy)))

    # ---- algebra ----

    def multiply(self, other: "Matrix3x3") -> "Matrix3x3":
        a = self.elements
        b = other.elements
        return Matrix3x3(
            a[0] * b[0] + a[1] * b[3] + a[2] * b[6],
            a[0] * b[1] + a[1] * b[4] + a[2] * b[7],
            a[0] * b[2] + a[1] * b[5] + a[2] * b[8],

            a[3] * b[0] + a[4] * b[3] + a[5] * b[6],
            a[3] * b[1] + a[4] * b[4] + a[5] * b[7],
            a[3] * b[2] + a[4] * b[5] + a[5] * b[8],

            a[6] * b[0] + a[7] * b[3] + a[8] * b[6],
            a[6] * b[1] + a[7] * b[4] + a[8] * b[7],
            a[6] * b[2] + a[7] * b[5] + a[8] * b[8],
        )

    def __matmul__(self, other: "Matrix3x3") -> "Matrix3x3":
        return self.multiply(other)

    def transform_point(self, x: float, y: float) -> Point2:
        e = self.elements
        tx = e[0] * x + e[1] * y + e[2]
        ty = e[3] * x + e[4] * y + e[5]
        # w stays 1 for affine matrices; divide only if something made it projective
        w = e[6] * x + e[7] * y + e[8]
        if abs(w - 1.0) > W_EPS:
            return Point2(tx / w, ty / w)
        return Point2(tx, ty)

    def determinant(self) -> float:
        e = self.elements
        return (e[0] * (e[4] * e[8] - e[5] * e[7])
                - e[1] * (e[3] * e[8] - e[5] * e[6])
                + e[2] * (e[3] * e[7] - e[4] * e[6]))

    def inverse(self) -> "Matrix3x3":
        det = self.determinant()
        if not math.isfinite(det) or abs(det) < SINGULAR_EPS:
            raise SingularMatrixError(f"matrix is singular (det={det!r}) and cannot be inverted")

        e = self.elements
        k = 1.0 / det
        # adjugate / det
        return Matrix3x3(
            k * (e[4] * e[8] - e[5] * e[7]),
            k * (e[2] * e[7] - e[1] * e[8]),
            k * (e[1] * e[5] - e[2] * e[4]),

            k * (e[5] * e[6] - e[3] * e[8]),
            k * (e[0] * e[8] - e[2] * e[6]),
            k * (e[2] * e[3] - e[0] * e[5]),

            k * (e[3] * e[7] - e[4] * e[6]),
            k * (e[1] * e[6] - e[0] * e[7]),
            k * (e[0] * e[4] - e[1] * e[3]),
        )

    def transpose(self) -> "Matrix3x3":
        e = self.elements
        return Matrix3x3(e[0], e[3], e[6],
                         e[1], e[4], e[7],
                         e[2], e[5], e[8])

    # ---- value helpers ----

    def get(self, row: int, col: int) -> float:
        if not (0 <= row <= 2 and 0 <= col <= 2):
            raise IndexError(f"invalid matrix indices: ({row}, {col})")
        return self.elements[row * 3 + col]

    def equals(self, other: "Matrix3x3", epsilon: float = 1e-10) -> bool:
        return all(abs(a - b) <= epsilon for a, b in zip(self.elements, other.elements))

    def clone(self) -> "Matrix3x3":
        return Matrix3x3(*self.elements)

    def __str__(self) -> str:
        e = self.elements
        return (
            "Matrix3x3:\n"
            f"[{e[0]:.3f} {e[1]:.3f} {e[2]:.3f}]\n"
            f"[{e[3]:.3f} {e[4]:.3f} {e[5]:.3f}]\n"
            f"[{e[6]:.3f} {e[7]:.3f} {e[8]:.3f}]"
        )
