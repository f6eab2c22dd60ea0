import math

import numpy as np
import pytest

from steerdesc.convolve_sparse import BorderType, ImageConvolveSparse
from steerdesc.describe import DescribePointSteerable2D, SteerableParams
from steerdesc.kernels import steerable_gaussian_bank
from steerdesc.orientation import OrientationAverage


class FixedOrientation:
    def __init__(self, angle):
        self.angle = angle
        self.calls = []

    def set_image(self, deriv_x, deriv_y):
        self.shape = deriv_x.shape

    def compute(self, x, y):
        self.calls.append((x, y))
        return self.angle


class ShiftedOrientation:
    def __init__(self, inner, shift):
        self.inner = inner
        self.shift = shift

    def set_image(self, deriv_x, deriv_y):
        self.inner.set_image(deriv_x, deriv_y)

    def compute(self, x, y):
        return self.inner.compute(x, y) + self.shift


class FailingOrientation:
    def set_image(self, deriv_x, deriv_y):
        pass

    def compute(self, x, y):
        raise IndexError("point outside gradient image")


@pytest.fixture(scope="module")
def bank():
    return steerable_gaussian_bank(4, sigma=2.0, radius=6)


def _bound(alg, image, gradient):
    alg.set_image(image, *gradient)
    return alg


def test_descriptor_length_and_determinism(bank, radial_image, radial_gradient):
    alg = _bound(
        DescribePointSteerable2D(OrientationAverage(4), bank, normalize=True),
        radial_image,
        radial_gradient,
    )
    a = alg.describe(45, 52)
    b = alg.describe(45, 52)
    assert a.shape == (14,)
    assert alg.dof == 14
    assert np.array_equal(a, b)
    assert np.sum(a**2) == pytest.approx(1.0)


def test_each_element_comes_from_its_kernel(bank, radial_image, radial_gradient):
    angle = 0.9
    alg = _bound(
        DescribePointSteerable2D(FixedOrientation(angle), bank, normalize=False),
        radial_image,
        radial_gradient,
    )
    desc = alg.describe(40, 47)

    conv = ImageConvolveSparse(BorderType.EXTENDED)
    conv.set_image(radial_image)
    for i, filt in enumerate(bank):
        conv.set_kernel(filt.compute(angle))
        assert desc[i] == conv.compute(40, 47)


def test_reversed_bank_reverses_descriptor(bank, radial_image, radial_gradient):
    fwd = _bound(
        DescribePointSteerable2D(FixedOrientation(1.1), bank, normalize=False),
        radial_image,
        radial_gradient,
    )
    rev = _bound(
        DescribePointSteerable2D(FixedOrientation(1.1), bank[::-1], normalize=False),
        radial_image,
        radial_gradient,
    )
    np.testing.assert_array_equal(fwd.describe(60, 44), rev.describe(60, 44)[::-1])


def test_orientation_is_queried_at_point(bank, radial_image, radial_gradient):
    ori = FixedOrientation(0.0)
    alg = _bound(DescribePointSteerable2D(ori, bank, False), radial_image, radial_gradient)
    alg.describe(12, 34)
    assert ori.calls == [(12, 34)]
    assert ori.shape == radial_image.shape


@pytest.mark.parametrize("normalize", [False, True])
@pytest.mark.parametrize("point", [(50, 50), (58, 41), (30, 66)])
def test_full_turn_gives_same_descriptor(bank, radial_image, radial_gradient, normalize, point):
    base = _bound(
        DescribePointSteerable2D(OrientationAverage(4), bank, normalize),
        radial_image,
        radial_gradient,
    )
    turned = _bound(
        DescribePointSteerable2D(
            ShiftedOrientation(OrientationAverage(4), 2 * math.pi), bank, normalize
        ),
        radial_image,
        radial_gradient,
    )
    np.testing.assert_allclose(base.describe(*point), turned.describe(*point), atol=1e-9)


def test_symmetric_blob_gives_rotation_invariant_response(bank, radial_image, radial_gradient):
    # points at equal distance from the blob center see the same pattern
    alg = _bound(
        DescribePointSteerable2D(OrientationAverage(4), bank, normalize=False),
        radial_image,
        radial_gradient,
    )
    east = alg.describe(62, 50)
    north = alg.describe(50, 38)
    np.testing.assert_allclose(east, north, atol=1e-4)


def test_zero_image_stays_zero(bank):
    img = np.zeros((30, 30), dtype=np.float32)
    alg = DescribePointSteerable2D(OrientationAverage(3), bank, normalize=True)
    alg.set_image(img, img, img)
    np.testing.assert_array_equal(alg.describe(15, 15), 0.0)


def test_orientation_errors_propagate(bank, radial_image, radial_gradient):
    alg = _bound(
        DescribePointSteerable2D(FailingOrientation(), bank, normalize=True),
        radial_image,
        radial_gradient,
    )
    with pytest.raises(IndexError, match="outside gradient image"):
        alg.describe(0, 0)


def test_describe_requires_image(bank):
    alg = DescribePointSteerable2D(OrientationAverage(3), bank, normalize=True)
    with pytest.raises(RuntimeError):
        alg.describe(1, 1)


def test_empty_bank_rejected():
    with pytest.raises(ValueError):
        DescribePointSteerable2D(OrientationAverage(3), [], normalize=True)


def test_describe_all(bank, radial_image, radial_gradient):
    alg = _bound(
        DescribePointSteerable2D(OrientationAverage(4), bank, normalize=True),
        radial_image,
        radial_gradient,
    )
    points = [(50, 50), (45, 52), (70, 30)]
    out = alg.describe_all(points)
    assert out.shape == (3, 14)
    for row, (x, y) in zip(out, points):
        np.testing.assert_array_equal(row, alg.describe(x, y))
    assert alg.describe_all([]).shape == (0, 14)


def test_from_params(radial_image, radial_gradient):
    params = SteerableParams(max_order=2, sigma=1.5, orientation_radius=3, normalize=False)
    assert params.radius == 5
    assert len(params.kernels) == 5

    alg = DescribePointSteerable2D.from_params(params)
    alg.set_image(radial_image, *radial_gradient)
    assert alg.describe(40, 40).shape == (5,)
    assert alg.normalize is False
    assert alg.convolver.border == BorderType.EXTENDED


def test_default_params():
    params = SteerableParams()
    assert params.max_order == 4
    assert len(params.kernels) == 14
    assert params.border is BorderType.EXTENDED
