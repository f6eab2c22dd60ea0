from .convolve_sparse import BorderType, ImageBorder, ImageConvolveSparse
from .describe import DescribePointSteerable2D, SteerableParams
from .image import box_sum, image_gradient, integral_image, read_gray_bt709
from .kernels import (
    InvalidKernelError,
    Kernel2D,
    SteerableKernel,
    gaussian_2d,
    steerable_gaussian,
    steerable_gaussian_bank,
)
from .orientation import OrientationAverage, OrientationGradient, OrientationHistogram
from .surf import DescribePointSurf, SurfParams, features, gradient, normalize_features

__version__ = "0.1.0"
