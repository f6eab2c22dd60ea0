from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from .convolve_sparse import BorderType, ImageConvolveSparse
from .kernels import SteerableKernel, sigma_and_radius, steerable_gaussian_bank
from .orientation import OrientationAverage, OrientationGradient
from .surf import normalize_features

logger = logging.getLogger(__name__)


@dataclass
class SteerableParams:
    max_order: int = 4
    sigma: float = -1
    radius: int = -1
    orientation_radius: int = 4
    orientation_weighted: bool = True
    normalize: bool = True
    border: BorderType = BorderType.EXTENDED

    kernels: List[SteerableKernel] | None = None

    def __post_init__(self) -> None:
        self.sigma, self.radius = sigma_and_radius(self.sigma, self.radius)
        self.border = BorderType(self.border)
        self.kernels = steerable_gaussian_bank(self.max_order, self.sigma, self.radius)


class DescribePointSteerable2D:
    """Describes a point by the responses of steerable kernels.

    The kernels are steered to the orientation estimated at the point and
    evaluated there with a sparse convolution. Element ``i`` of a descriptor
    always comes from ``kernels[i]``.
    """

    def __init__(
        self,
        orientation: OrientationGradient,
        kernels: Sequence[SteerableKernel],
        normalize: bool,
        border: BorderType = BorderType.EXTENDED,
    ):
        kernels = list(kernels)
        if not kernels:
            raise ValueError("at least one steerable kernel is required")
        self.orientation = orientation
        self.kernels = kernels
        # should the feature vector be normalized to one?
        self.normalize = normalize
        self.convolver = ImageConvolveSparse(border)
        self._bound = False

    @classmethod
    def from_params(cls, params: SteerableParams | None = None):
        params = SteerableParams() if params is None else params
        orientation = OrientationAverage(
            params.orientation_radius, params.orientation_weighted
        )
        return cls(orientation, params.kernels, params.normalize, params.border)

    @property
    def dof(self) -> int:
        return len(self.kernels)

    def set_image(
        self, image: np.ndarray, deriv_x: np.ndarray, deriv_y: np.ndarray
    ) -> None:
        self.convolver.set_image(image)
        self.orientation.set_image(deriv_x, deriv_y)
        self._bound = True
        logger.debug(
            "steerable descriptor: bound image %s, %d kernels",
            np.shape(image),
            len(self.kernels),
        )

    def describe(self, x: int, y: int) -> np.ndarray:
        if not self._bound:
            raise RuntimeError("set_image() must be called before describe()")
        ret = np.zeros(len(self.kernels))

        angle = self.orientation.compute(x, y)

        for i, filt in enumerate(self.kernels):
            self.convolver.set_kernel(filt.compute(angle))
            ret[i] = self.convolver.compute(x, y)

        if self.normalize:
            normalize_features(ret)
        return ret

    def describe_all(self, points: Iterable[Tuple[int, int]]) -> np.ndarray:
        rows = [self.describe(x, y) for x, y in points]
        if not rows:
            return np.zeros((0, len(self.kernels)))
        return np.stack(rows)
