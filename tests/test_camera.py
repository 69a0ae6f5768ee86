import dataclasses

import numpy as np
import pytest

from surfelfusion.camera import Intrinsics, Resolution


def test_resolution_accessors():
    res = Resolution(640, 480)
    assert res.cols() == 640
    assert res.rows() == 480
    assert res.num_pixels() == res.width * res.height


@pytest.mark.parametrize("width,height", [(0, 480), (640, 0), (-1, 10), (10, -5)])
def test_resolution_rejects_non_positive(width, height):
    with pytest.raises(ValueError):
        Resolution(width, height)


def test_resolution_is_immutable():
    res = Resolution(320, 240)
    with pytest.raises(dataclasses.FrozenInstanceError):
        res.width = 10
    assert res.width == 320
    assert res.num_pixels() == 320 * 240


def test_intrinsics_vector_order():
    intr = Intrinsics(fx=528.0, fy=529.5, cx=320.0, cy=240.0)
    np.testing.assert_array_equal(intr.as_vector(), [320.0, 240.0, 528.0, 529.5])
    assert intr.as_vector().dtype == np.float32


def test_intrinsics_inverse_focal_vector():
    intr = Intrinsics(fx=528.0, fy=529.5, cx=320.0, cy=240.0)
    vec = intr.inverse_focal_vector()
    assert vec[0] == intr.cx
    assert vec[1] == intr.cy
    assert vec[2] * intr.fx == pytest.approx(1.0)
    assert vec[3] * intr.fy == pytest.approx(1.0)


@pytest.mark.parametrize("fx,fy", [(0.0, 500.0), (500.0, 0.0)])
def test_intrinsics_rejects_zero_focal(fx, fy):
    with pytest.raises(ValueError):
        Intrinsics(fx=fx, fy=fy, cx=1.0, cy=1.0)