from __future__ import annotations

import math
from typing import Protocol, runtime_checkable

import numba
import numpy as np

TWO_PI = 2.0 * math.pi
ORI_BINS = 36


@runtime_checkable
class OrientationGradient(Protocol):
    """Estimates the dominant orientation of a point from image gradients."""

    def set_image(self, deriv_x: np.ndarray, deriv_y: np.ndarray) -> None: ...

    def compute(self, x: int, y: int) -> float: ...


@numba.njit(inline="always", cache=True)
def wrap_angle(theta: float) -> float:
    a = theta % TWO_PI
    # tiny negative angles round up to TWO_PI
    return 0.0 if a >= TWO_PI else a


@numba.njit(cache=True)
def _average_angle(gx, gy, x, y, radius, weighted, sigma):
    h, w = gx.shape
    y_min = max(0, y - radius)
    y_max = min(h - 1, y + radius)
    x_min = max(0, x - radius)
    x_max = min(w - 1, x + radius)
    inv2s2 = 1.0 / (2.0 * sigma * sigma)

    sum_x = 0.0
    sum_y = 0.0
    for yy in range(y_min, y_max + 1):
        dy = yy - y
        for xx in range(x_min, x_max + 1):
            dx = xx - x
            wgt = math.exp(-(dx * dx + dy * dy) * inv2s2) if weighted else 1.0
            sum_x += wgt * gx[yy, xx]
            sum_y += wgt * gy[yy, xx]
    return math.atan2(sum_y, sum_x)


@numba.njit(cache=True)
def _histogram_angle(gx, gy, x, y, radius, weighted, sigma, num_bins):
    h, w = gx.shape
    y_min = max(0, y - radius)
    y_max = min(h - 1, y + radius)
    x_min = max(0, x - radius)
    x_max = min(w - 1, x + radius)
    inv2s2 = 1.0 / (2.0 * sigma * sigma)
    binscl = num_bins / TWO_PI

    hist = np.zeros(num_bins)
    for yy in range(y_min, y_max + 1):
        dy = yy - y
        for xx in range(x_min, x_max + 1):
            dx = xx - x
            gxv = float(gx[yy, xx])
            gyv = float(gy[yy, xx])
            m = math.sqrt(gxv * gxv + gyv * gyv)
            if m == 0.0:
                continue
            if weighted:
                m *= math.exp(-(dx * dx + dy * dy) * inv2s2)
            a = wrap_angle(math.atan2(gyv, gxv))
            b = int(math.floor(a * binscl + 0.5)) % num_bins
            hist[b] += m

    tmp = np.empty(num_bins)
    for _ in range(6):
        tmp[:] = hist
        for i in range(num_bins):
            hist[i] = (
                tmp[(i - 1) % num_bins] + tmp[i] + tmp[(i + 1) % num_bins]
            ) / 3.0

    best = 0
    for i in range(1, num_bins):
        if hist[i] > hist[best]:
            best = i
    if hist[best] == 0.0:
        return 0.0

    p = hist[(best - 1) % num_bins]
    c = hist[best]
    n = hist[(best + 1) % num_bins]
    denom = p - 2.0 * c + n
    off = 0.0 if denom == 0.0 else (p - n) / (2.0 * denom)
    return wrap_angle((best + off) * (TWO_PI / num_bins))


class _WindowOrientation:
    def __init__(self, radius: int, weighted: bool):
        if radius < 1:
            raise ValueError(f"radius must be >= 1, got {radius}")
        self.radius = int(radius)
        self.weighted = bool(weighted)
        self.sigma = self.radius / 2.0
        self.deriv_x: np.ndarray | None = None
        self.deriv_y: np.ndarray | None = None

    def set_image(self, deriv_x: np.ndarray, deriv_y: np.ndarray) -> None:
        deriv_x = np.asarray(deriv_x)
        deriv_y = np.asarray(deriv_y)
        if deriv_x.ndim != 2 or deriv_x.shape != deriv_y.shape:
            raise ValueError(
                f"gradient images must be 2D with equal shapes, got "
                f"{deriv_x.shape} and {deriv_y.shape}"
            )
        self.deriv_x = deriv_x
        self.deriv_y = deriv_y

    def _check_bound(self) -> None:
        if self.deriv_x is None:
            raise RuntimeError("set_image() must be called before compute()")


class OrientationAverage(_WindowOrientation):
    """Direction of the summed gradient inside a square window."""

    def __init__(self, radius: int, weighted: bool = False):
        super().__init__(radius, weighted)

    def compute(self, x: int, y: int) -> float:
        self._check_bound()
        return _average_angle(
            self.deriv_x,
            self.deriv_y,
            int(x),
            int(y),
            self.radius,
            self.weighted,
            self.sigma,
        )


class OrientationHistogram(_WindowOrientation):
    """Peak of a magnitude weighted histogram of gradient angles.

    The histogram is smoothed circularly and the peak refined with a parabola
    through its neighbours. Angles are returned in ``[0, 2*pi)``.
    """

    def __init__(self, radius: int, num_bins: int = ORI_BINS, weighted: bool = True):
        super().__init__(radius, weighted)
        if num_bins < 3:
            raise ValueError(f"num_bins must be >= 3, got {num_bins}")
        self.num_bins = int(num_bins)

    def compute(self, x: int, y: int) -> float:
        self._check_bound()
        return _histogram_angle(
            self.deriv_x,
            self.deriv_y,
            int(x),
            int(y),
            self.radius,
            self.weighted,
            self.sigma,
            self.num_bins,
        )
