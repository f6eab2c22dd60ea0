from __future__ import annotations

import numpy as np
import pytest

from steerdesc import image_gradient, integral_image


@pytest.fixture
def rng():
    return np.random.default_rng(20111)


@pytest.fixture
def random_image(rng):
    return rng.random((40, 50))


@pytest.fixture(scope="session")
def radial_image():
    """Gaussian blob centered on (50, 50), rotationally symmetric."""
    y, x = np.mgrid[0:101, 0:101].astype(np.float64)
    r2 = (x - 50.0) ** 2 + (y - 50.0) ** 2
    return np.exp(-r2 / (2.0 * 12.0**2)).astype(np.float32)


@pytest.fixture(scope="session")
def radial_gradient(radial_image):
    return image_gradient(radial_image)


@pytest.fixture
def ramp_integral():
    """Integral image of ``img[y, x] = x`` on a 64x64 grid."""
    img = np.tile(np.arange(64, dtype=np.float64), (64, 1))
    return integral_image(img)


@pytest.fixture
def flat_integral():
    return integral_image(np.full((64, 64), 7.0))
