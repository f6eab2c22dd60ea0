from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, List, Sequence

import numpy as np
from numpy.polynomial import hermite_e

logger = logging.getLogger(__name__)

DEFAULT_RADIUS = 5


class InvalidKernelError(ValueError):
    """Raised when a kernel or a steerable basis is malformed."""


@dataclass(frozen=True, eq=False)
class Kernel2D:
    """Square grid of weights with the pixel at ``(offset, offset)`` as center.

    The weights are copied to a read-only ``float64`` array on construction.
    ``offset=-1`` places the center at ``width // 2``.
    """

    data: np.ndarray
    offset: int = -1

    def __post_init__(self) -> None:
        data = np.array(self.data, dtype=np.float64)
        if data.ndim != 2 or data.size == 0 or data.shape[0] != data.shape[1]:
            raise InvalidKernelError(
                f"kernel must be a non-empty square 2D array, got shape {data.shape}"
            )
        width = data.shape[0]
        offset = width // 2 if self.offset == -1 else int(self.offset)
        if not 0 <= offset < width:
            raise InvalidKernelError(
                f"offset {offset} outside kernel of width {width}"
            )
        data.flags.writeable = False
        object.__setattr__(self, "data", data)
        object.__setattr__(self, "offset", offset)

    @property
    def width(self) -> int:
        return self.data.shape[0]

    def get(self, x: int, y: int) -> float:
        return float(self.data[y, x])


class SteerableKernel:
    """Kernel synthesized at any angle as a weighted sum of a fixed basis.

    ``coefficients(angle)`` must return one weight per basis kernel. Steering
    is a pure function of the basis and the angle: the same angle always
    produces a bit-identical kernel.
    """

    def __init__(
        self,
        basis: Sequence[Kernel2D],
        coefficients: Callable[[float], Sequence[float]],
    ):
        basis = list(basis)
        if not basis:
            raise InvalidKernelError("steerable basis is empty")
        width, offset = basis[0].width, basis[0].offset
        for k in basis[1:]:
            if k.width != width or k.offset != offset:
                raise InvalidKernelError(
                    f"basis kernels differ in shape: width {k.width} offset "
                    f"{k.offset}, expected width {width} offset {offset}"
                )
        n_coeff = len(coefficients(0.0))
        if n_coeff != len(basis):
            raise InvalidKernelError(
                f"coefficient function returns {n_coeff} values for a basis "
                f"of {len(basis)} kernels"
            )
        self.basis = basis
        self.coefficients = coefficients
        self.offset = offset
        self._basis = [k.data for k in basis]

    @property
    def width(self) -> int:
        return self._basis[0].shape[0]

    def __len__(self) -> int:
        return len(self._basis)

    def compute(self, angle: float) -> Kernel2D:
        coeff = self.coefficients(angle)
        total = coeff[0] * self._basis[0]
        for i in range(1, len(self._basis)):
            total = total + coeff[i] * self._basis[i]
        return Kernel2D(total, self.offset)


def sigma_and_radius(sigma: float, radius: int) -> tuple[float, int]:
    if radius <= 0:
        radius = DEFAULT_RADIUS if sigma <= 0 else int(math.ceil(3.0 * sigma))
    if sigma <= 0:
        sigma = radius / 3.0
    return float(sigma), int(radius)


def gaussian_derivative_1d(order: int, sigma: float, radius: int) -> np.ndarray:
    """Samples of the ``order``-th derivative of a Gaussian on ``[-radius, radius]``.

    Scaled by the sum of the plain Gaussian samples so that every order shares
    the normalization of the zeroth order kernel.
    """
    if order < 0:
        raise InvalidKernelError(f"derivative order must be >= 0, got {order}")
    x = np.arange(-radius, radius + 1, dtype=np.float64)
    g = np.exp(-(x * x) / (2.0 * sigma * sigma))
    herm = hermite_e.hermeval(x / sigma, [0.0] * order + [1.0])
    return (-1.0 / sigma) ** order * herm * g / g.sum()


def gaussian_derivative_2d(
    order_x: int, order_y: int, sigma: float, radius: int
) -> Kernel2D:
    kx = gaussian_derivative_1d(order_x, sigma, radius)
    ky = gaussian_derivative_1d(order_y, sigma, radius)
    return Kernel2D(np.outer(ky, kx), radius)


def gaussian_2d(sigma: float, radius: int) -> Kernel2D:
    return gaussian_derivative_2d(0, 0, sigma, radius)


def _rotated_derivative_coefficients(
    order_x: int, order_y: int
) -> Callable[[float], np.ndarray]:
    # expands (c dx + s dy)^order_x (-s dx + c dy)^order_y; index k is the power of dy
    def coefficients(angle: float) -> np.ndarray:
        c = math.cos(angle)
        s = math.sin(angle)
        coeff = np.ones(1)
        for _ in range(order_x):
            coeff = np.convolve(coeff, (c, s))
        for _ in range(order_y):
            coeff = np.convolve(coeff, (-s, c))
        return coeff

    return coefficients


def steerable_gaussian(
    order_x: int, order_y: int, sigma: float = -1, radius: int = -1
) -> SteerableKernel:
    """Gaussian derivative ``d^a/du^a d^b/dv^b`` steerable to any angle.

    ``u`` and ``v`` are the image axes rotated by the steering angle. The basis
    holds all ``n + 1`` derivatives of total order ``n = order_x + order_y``.
    """
    order = order_x + order_y
    if order_x < 0 or order_y < 0 or order == 0:
        raise InvalidKernelError(
            f"derivative orders must be non-negative with a positive total, "
            f"got ({order_x}, {order_y})"
        )
    sigma, radius = sigma_and_radius(sigma, radius)
    basis = [
        gaussian_derivative_2d(order - k, k, sigma, radius) for k in range(order + 1)
    ]
    return SteerableKernel(basis, _rotated_derivative_coefficients(order_x, order_y))


def steerable_gaussian_bank(
    max_order: int = 4, sigma: float = -1, radius: int = -1
) -> List[SteerableKernel]:
    """All steerable Gaussian derivatives with total order in ``[1, max_order]``.

    Ordered by total order, then by increasing y order.
    """
    if max_order < 1:
        raise ValueError(f"max_order must be >= 1, got {max_order}")
    sigma, radius = sigma_and_radius(sigma, radius)
    bank = [
        steerable_gaussian(order - k, k, sigma, radius)
        for order in range(1, max_order + 1)
        for k in range(order + 1)
    ]
    logger.debug(
        "steerable gaussian bank: %d kernels, sigma=%.3f radius=%d",
        len(bank),
        sigma,
        radius,
    )
    return bank
