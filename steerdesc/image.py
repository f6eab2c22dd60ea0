from __future__ import annotations

from pathlib import Path

import numba
import numpy as np
from PIL import Image

W709_RGB = np.array(
    [0.212639005871510, 0.715168678767756, 0.072192315360734], dtype=np.float32
)


def read_gray_bt709(path: str | Path) -> np.ndarray:
    """Loads an image as float32 luma in ``[0, 1]``."""
    im = Image.open(path)
    if im.mode not in ("L", "RGB"):
        im = im.convert("RGB")
    img = np.asarray(im).astype(np.float32) / 255.0
    if img.ndim == 2:
        return img
    return img @ W709_RGB


@numba.njit(cache=True)
def _gradient(img, gx_out, gy_out):
    h, w = img.shape
    for y in range(h):
        up = y - 1 if y > 0 else 0
        down = y + 1 if y < h - 1 else h - 1
        fy = 0.5 if 0 < y < h - 1 else 1.0
        for x in range(w):
            left = x - 1 if x > 0 else 0
            right = x + 1 if x < w - 1 else w - 1
            fx = 0.5 if 0 < x < w - 1 else 1.0
            gx_out[y, x] = fx * (float(img[y, right]) - float(img[y, left]))
            gy_out[y, x] = fy * (float(img[down, x]) - float(img[up, x]))


def image_gradient(img: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Central difference gradient; one-sided differences on the border."""
    img = np.asarray(img)
    if img.ndim != 2:
        raise ValueError(f"expected a 2D image, got shape {img.shape}")
    gx = np.zeros(img.shape, dtype=np.float32)
    gy = np.zeros(img.shape, dtype=np.float32)
    if img.shape[0] > 1 and img.shape[1] > 1:
        _gradient(img, gx, gy)
    return gx, gy


def integral_image(img: np.ndarray) -> np.ndarray:
    """``ii[y, x]`` is the sum of ``img[0..y, 0..x]`` inclusive."""
    img = np.asarray(img, dtype=np.float64)
    if img.ndim != 2:
        raise ValueError(f"expected a 2D image, got shape {img.shape}")
    return img.cumsum(axis=0).cumsum(axis=1)


@numba.njit(inline="always", cache=True)
def _ii_get(ii, x: int, y: int) -> float:
    if x < 0 or y < 0:
        return 0.0
    h, w = ii.shape
    if x >= w:
        x = w - 1
    if y >= h:
        y = h - 1
    return ii[y, x]


@numba.njit(cache=True)
def box_sum(ii, x0: int, y0: int, x1: int, y1: int) -> float:
    """Sum of pixels with ``x0 < x <= x1`` and ``y0 < y <= y1``."""
    return (
        _ii_get(ii, x1, y1)
        - _ii_get(ii, x0, y1)
        - _ii_get(ii, x1, y0)
        + _ii_get(ii, x0, y0)
    )
