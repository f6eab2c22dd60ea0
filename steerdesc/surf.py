"""SURF descriptor operations on integral images.

Haar wavelet responses are four box sums each, so their cost does not depend
on the wavelet size. No bounds checking happens here: lookups outside the
integral image follow the clamping done by :func:`steerdesc.image.box_sum`.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numba
import numpy as np

from .image import box_sum
from .kernels import Kernel2D

logger = logging.getLogger(__name__)

SURF_WINDOW_SIGMA = 3.3


@numba.njit(inline="always", cache=True)
def haar_x(ii, x: int, y: int, r: int) -> float:
    right = box_sum(ii, x - 1, y - r - 1, x + r - 1, y + r - 1)
    left = box_sum(ii, x - r - 1, y - r - 1, x - 1, y + r - 1)
    return right - left


@numba.njit(inline="always", cache=True)
def haar_y(ii, x: int, y: int, r: int) -> float:
    bottom = box_sum(ii, x - r - 1, y - 1, x + r - 1, y + r - 1)
    top = box_sum(ii, x - r - 1, y - r - 1, x + r - 1, y - 1)
    return bottom - top


def wavelet_radius(scale: float) -> int:
    return max(1, int(round(scale)))


@numba.njit(cache=True)
def _gradient(ii, c_x, c_y, radius, scale, r, deriv_x, deriv_y):
    i = 0
    for j in range(-radius, radius + 1):
        py = c_y + int(math.floor(j * scale + 0.5))
        for k in range(-radius, radius + 1):
            px = c_x + int(math.floor(k * scale + 0.5))
            deriv_x[i] = haar_x(ii, px, py, r)
            deriv_y[i] = haar_y(ii, px, py, r)
            i += 1


@numba.njit(cache=True)
def _features(ii, c_x, c_y, c, s, weight, region_size, num_sub, scale, r, out):
    sub = region_size // num_sub
    half = region_size / 2.0
    idx = 0
    for sy in range(num_sub):
        for sx in range(num_sub):
            sum_dx = 0.0
            sum_dy = 0.0
            sum_adx = 0.0
            sum_ady = 0.0
            for j in range(sub):
                oy = (sy * sub + j - half + 0.5) * scale
                for k in range(sub):
                    ox = (sx * sub + k - half + 0.5) * scale
                    px = c_x + int(math.floor(c * ox - s * oy + 0.5))
                    py = c_y + int(math.floor(s * ox + c * oy + 0.5))
                    dx = haar_x(ii, px, py, r)
                    dy = haar_y(ii, px, py, r)
                    # response in the feature's frame
                    rdx = c * dx + s * dy
                    rdy = -s * dx + c * dy
                    sum_dx += rdx
                    sum_dy += rdy
                    sum_adx += abs(rdx)
                    sum_ady += abs(rdy)
            wgt = weight[sy, sx]
            out[idx] = wgt * sum_dx
            out[idx + 1] = wgt * sum_dy
            out[idx + 2] = wgt * sum_adx
            out[idx + 3] = wgt * sum_ady
            idx += 4


def gradient(
    ii: np.ndarray,
    c_x: int,
    c_y: int,
    radius: int,
    scale: float,
    deriv_x: np.ndarray | None = None,
    deriv_y: np.ndarray | None = None,
) -> tuple[np.ndarray, np.ndarray]:
    """Haar wavelet "gradient" sampled every ``scale`` pixels around a point.

    The ``(2*radius + 1)**2`` samples are written row by row into ``deriv_x``
    and ``deriv_y``, which are allocated when not given.
    """
    n = (2 * radius + 1) ** 2
    if deriv_x is None:
        deriv_x = np.zeros(n)
    if deriv_y is None:
        deriv_y = np.zeros(n)
    if deriv_x.shape[0] < n or deriv_y.shape[0] < n:
        raise ValueError(f"gradient output arrays must hold {n} samples")
    _gradient(
        ii,
        int(c_x),
        int(c_y),
        int(radius),
        float(scale),
        wavelet_radius(scale),
        deriv_x,
        deriv_y,
    )
    return deriv_x, deriv_y


def features(
    ii: np.ndarray,
    c_x: int,
    c_y: int,
    theta: float,
    weight: Kernel2D,
    region_size: int,
    num_sub_regions: int,
    scale: float,
    features: np.ndarray | None = None,
) -> np.ndarray:
    """Computes the ``4 * num_sub_regions**2`` SURF features of one point.

    The region is ``region_size`` wavelets wide and rotated by ``theta``. For
    every sub-region, row by row, the values ``(sum dx, sum dy, sum |dx|,
    sum |dy|)`` are written.

    Deviation from the paper: the weight is applied to each sub-region sum as
    a whole instead of to every wavelet, so it is looked up once per
    sub-region from ``weight``.
    """
    if region_size % num_sub_regions != 0:
        raise ValueError(
            f"region_size {region_size} is not divisible by "
            f"num_sub_regions {num_sub_regions}"
        )
    if weight.width != num_sub_regions:
        raise ValueError(
            f"weight kernel width {weight.width} != num_sub_regions {num_sub_regions}"
        )
    n = 4 * num_sub_regions * num_sub_regions
    if features is None:
        features = np.zeros(n)
    elif features.shape[0] < n:
        raise ValueError(f"features must hold {n} values, got {features.shape[0]}")
    _features(
        ii,
        int(c_x),
        int(c_y),
        math.cos(theta),
        math.sin(theta),
        weight.data,
        int(region_size),
        int(num_sub_regions),
        float(scale),
        wavelet_radius(scale),
        features,
    )
    return features


def normalize_features(features: np.ndarray) -> np.ndarray:
    """L2 normalizes ``features`` and returns it.

    Floating point arrays are normalized in place. Any other input is first
    copied to a new ``float64`` array, which is normalized and returned.
    """
    if not (
        isinstance(features, np.ndarray) and np.issubdtype(features.dtype, np.floating)
    ):
        features = np.array(features, dtype=np.float64)
    norm = float(np.dot(features, features))
    # if the norm is zero, don't normalize
    if norm == 0:
        return features
    features /= math.sqrt(norm)
    return features


def sub_region_weight(num_sub_regions: int, sigma: float) -> Kernel2D:
    """Gaussian centered on the region, one weight per sub-region."""
    pos = np.arange(num_sub_regions, dtype=np.float64) - (num_sub_regions - 1) / 2.0
    g = np.exp(-(pos * pos) / (2.0 * sigma * sigma))
    w = np.outer(g, g)
    return Kernel2D(w / w.sum(), num_sub_regions // 2)


@dataclass
class SurfParams:
    radius: int = 6
    region_size: int = 20
    num_sub_regions: int = 4
    weight_sigma: float = -1
    normalize: bool = True

    weight: Kernel2D | None = None

    def __post_init__(self) -> None:
        if self.num_sub_regions < 1 or self.region_size < self.num_sub_regions:
            raise ValueError(
                f"invalid region: region_size={self.region_size} "
                f"num_sub_regions={self.num_sub_regions}"
            )
        if self.region_size % self.num_sub_regions != 0:
            raise ValueError(
                f"region_size {self.region_size} is not divisible by "
                f"num_sub_regions {self.num_sub_regions}"
            )
        if self.weight_sigma <= 0:
            # window sigma of the paper, in sub-region units
            sub = self.region_size / self.num_sub_regions
            self.weight_sigma = SURF_WINDOW_SIGMA / sub
        self.weight = sub_region_weight(self.num_sub_regions, self.weight_sigma)

    @property
    def descriptor_length(self) -> int:
        return 4 * self.num_sub_regions * self.num_sub_regions


class DescribePointSurf:
    """SURF descriptor of points in a bound integral image."""

    def __init__(self, params: SurfParams | None = None):
        self.params = SurfParams() if params is None else params
        self.ii: np.ndarray | None = None

    def set_image(self, ii: np.ndarray) -> None:
        ii = np.asarray(ii)
        if ii.ndim != 2:
            raise ValueError(f"expected a 2D integral image, got shape {ii.shape}")
        self.ii = ii
        logger.debug("surf: bound integral image %s", ii.shape)

    def _check_bound(self) -> None:
        if self.ii is None:
            raise RuntimeError("set_image() must be called first")

    def gradient(self, x: int, y: int, scale: float) -> tuple[np.ndarray, np.ndarray]:
        self._check_bound()
        return gradient(self.ii, x, y, self.params.radius, scale)

    def describe(self, x: int, y: int, theta: float, scale: float) -> np.ndarray:
        self._check_bound()
        p = self.params
        ret = features(
            self.ii,
            x,
            y,
            theta,
            p.weight,
            p.region_size,
            p.num_sub_regions,
            scale,
        )
        if p.normalize:
            normalize_features(ret)
        return ret
