import math

import pytest

from inkpipe.core.matrix import Matrix3x3, SingularMatrixError


BUILT = [
    Matrix3x3.identity(),
    Matrix3x3.translation(12.5, -3.0),
    Matrix3x3.scale(2.0),
    Matrix3x3.scale(0.5, 4.0),
    Matrix3x3.rotation(math.pi / 5),
    Matrix3x3.rotation_around(1.2, 512.0, 512.0),
    Matrix3x3.translation(3, 4).multiply(Matrix3x3.scale(2, 3)).multiply(Matrix3x3.rotation(-0.7)),
]


@pytest.mark.parametrize("m", BUILT)
def test_times_inverse_is_identity(m):
    assert m.multiply(m.inverse()).equals(Matrix3x3.identity(), 1e-6)
    assert m.inverse().multiply(m).equals(Matrix3x3.identity(), 1e-6)


def test_singular_inverse_raises():
    with pytest.raises(SingularMatrixError):
        Matrix3x3.scale(0.0, 1.0).inverse()
    with pytest.raises(ArithmeticError):
        Matrix3x3.from_elements([1, 2, 3, 2, 4, 6, 0, 0, 1]).inverse()


def test_multiply_applies_right_operand_first():
    t = Matrix3x3.translation(10, 0)
    s = Matrix3x3.scale(2)

    # scale then translate
    p = t.multiply(s).transform_point(1, 1)
    assert (p.x, p.y) == pytest.approx((12, 2))

    # translate then scale
    p = s.multiply(t).transform_point(1, 1)
    assert (p.x, p.y) == pytest.approx((22, 2))

    assert (t @ s).equals(t.multiply(s))


def test_rotation_around_keeps_center_fixed():
    m = Matrix3x3.rotation_around(math.pi / 2, 512, 512)
    c = m.transform_point(512, 512)
    assert (c.x, c.y) == pytest.approx((512, 512))

    p = m.transform_point(612, 512)
    assert (p.x, p.y) == pytest.approx((512, 612))


def test_transform_point_divides_by_w():
    m = Matrix3x3(1, 0, 0,
                  0, 1, 0,
                  0, 0, 2)
    p = m.transform_point(4, 6)
    assert (p.x, p.y) == pytest.approx((2, 3))


def test_determinant_and_transpose():
    assert Matrix3x3.scale(2, 3).determinant() == pytest.approx(6)
    assert Matrix3x3.rotation(0.3).determinant() == pytest.approx(1)

    m = Matrix3x3.from_elements(range(1, 10))
    assert m.transpose().elements == (1, 4, 7, 2, 5, 8, 3, 6, 9)
    assert m.transpose().transpose() == m


def test_get_and_bounds():
    m = Matrix3x3.translation(7, 8)
    assert m.get(0, 2) == 7
    assert m.get(1, 2) == 8
    with pytest.raises(IndexError):
        m.get(3, 0)
    with pytest.raises(IndexError):
        m.get(0, -1)


def test_from_elements_needs_nine():
    with pytest.raises(ValueError):
        Matrix3x3.from_elements([1, 2, 3])


def test_clone_and_equals():
    m = Matrix3x3.rotation(0.25)
    c = m.clone()
    assert c == m
    assert c is not m
    assert not m.equals(Matrix3x3.rotation(0.26))
    assert m.equals(Matrix3x3.rotation(0.25 + 1e-12))


def test_str_is_readable():
    s = str(Matrix3x3.identity())
    assert s.startswith("Matrix3x3:")
    assert "[1.000 0.000 0.000]" in s
