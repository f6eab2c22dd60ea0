from __future__ import annotations

from enum import IntEnum

import numba
import numpy as np

from .kernels import Kernel2D


class BorderType(IntEnum):
    EXTENDED = 0
    REFLECT = 1
    WRAP = 2
    ZERO = 3


@numba.njit(inline="always", cache=True)
def border_index(i: int, n: int, border: int) -> int:
    """Maps a coordinate onto ``[0, n)``; returns -1 when it reads as zero."""
    if 0 <= i < n:
        return i
    if border == 0:
        return 0 if i < 0 else n - 1
    if border == 1:
        i = i % (n << 1)
        if i >= n:
            i = (n << 1) - 1 - i
        return i
    if border == 2:
        return i % n
    return -1


@numba.njit(cache=True)
def sample(image, x: int, y: int, border: int) -> float:
    h, w = image.shape
    xx = border_index(x, w, border)
    yy = border_index(y, h, border)
    if xx < 0 or yy < 0:
        return 0.0
    return float(image[yy, xx])


@numba.njit(cache=True)
def convolve_point(image, kernel, offset: int, x: int, y: int, border: int) -> float:
    h, w = image.shape
    width = kernel.shape[0]
    x0 = x - offset
    y0 = y - offset
    total = 0.0
    if x0 >= 0 and y0 >= 0 and x0 + width <= w and y0 + width <= h:
        for v in range(width):
            for u in range(width):
                total += kernel[v, u] * image[y0 + v, x0 + u]
        return total
    for v in range(width):
        yy = border_index(y0 + v, h, border)
        if yy < 0:
            continue
        for u in range(width):
            xx = border_index(x0 + u, w, border)
            if xx < 0:
                continue
            total += kernel[v, u] * image[yy, xx]
    return total


def _check_image(image: np.ndarray) -> np.ndarray:
    image = np.asarray(image)
    assert image.ndim == 2, f"expected a 2D image, got shape {image.shape}"
    assert image.size > 0, "image is empty, no pixel can be sampled"
    return image


class ImageBorder:
    """Read access to an image where out-of-range pixels follow a border rule."""

    def __init__(self, image: np.ndarray, border: BorderType = BorderType.EXTENDED):
        self.image = _check_image(image)
        self.border = BorderType(border)

    @property
    def width(self) -> int:
        return self.image.shape[1]

    @property
    def height(self) -> int:
        return self.image.shape[0]

    def get(self, x: int, y: int) -> float:
        return sample(self.image, int(x), int(y), int(self.border))


class ImageConvolveSparse:
    """Evaluates a 2D kernel at single pixels of a bound image.

    The image and kernel are bound per instance; threads sharing an image
    should each use their own instance.
    """

    def __init__(self, border: BorderType = BorderType.EXTENDED):
        self.border = BorderType(border)
        self.image: np.ndarray | None = None
        self.kernel: Kernel2D | None = None

    def set_image(self, image: np.ndarray) -> None:
        self.image = _check_image(image)

    def set_kernel(self, kernel: Kernel2D) -> None:
        self.kernel = kernel

    def compute(self, x: int, y: int) -> float:
        if self.image is None or self.kernel is None:
            raise RuntimeError("set_image() and set_kernel() must be called first")
        return convolve_point(
            self.image,
            self.kernel.data,
            self.kernel.offset,
            int(x),
            int(y),
            int(self.border),
        )
