"""Frame preparation, gradient field computation, and the display mask."""

from __future__ import annotations

import logging

import cv2
import numpy as np

from VISTA.config import Config, ConfigurationError
from VISTA.src.core.types import GradientField

logger = logging.getLogger(__name__)


def to_gray(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.ndim == 3 and image.shape[2] == 1:
        return image[:, :, 0]
    if image.ndim == 3 and image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_BGRA2GRAY)
    return cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)


class ImageProcessor:
    def __init__(self, config: Config):
        self.config = config

    def process_image(self, img: np.ndarray) -> np.ndarray:
        """Downscale a captured frame by the integer SCALE factor."""
        scale = int(self.config.SCALE)
        if scale <= 1:
            return img
        h, w = img.shape[:2]
        size = (max(1, w // scale), max(1, h // scale))
        return cv2.resize(img, size, interpolation=cv2.INTER_LINEAR)

    @staticmethod
    def rotate_upright(img: np.ndarray, angle_deg: float) -> np.ndarray:
        """Rotate so that a visual vertical at ``angle_deg`` ends up at 90 degrees."""
        h, w = img.shape[:2]
        rot = cv2.getRotationMatrix2D((w / 2.0, h / 2.0), float(angle_deg) - 90.0, 1.0)
        return cv2.warpAffine(img, rot, (w, h), flags=cv2.INTER_LINEAR)


class GradientFieldBuilder:
    """Blur + Sobel gradient field of a frame, angles counter-clockwise with y up."""

    def __init__(self, config: Config):
        k = int(config.BLUR_KERNEL_SIZE)
        if k <= 0 or k % 2 == 0:
            raise ConfigurationError(f"BLUR_KERNEL_SIZE must be a positive odd number (got {k})")
        if config.BLUR_SIGMA < 0:
            raise ConfigurationError(f"BLUR_SIGMA must be >= 0 (got {config.BLUR_SIGMA})")
        self.kernel = (k, k)
        self.sigma = float(config.BLUR_SIGMA)
        self.use_opencl = bool(config.USE_OPENCL) and cv2.ocl.haveOpenCL()
        if config.USE_OPENCL and not self.use_opencl:
            logger.warning("OpenCL requested but not available. Using the CPU path.")

    def compute(self, image: np.ndarray) -> GradientField:
        gray = to_gray(image)
        # 8-bit frames are blurred as-is; the fixed-point path keeps flat regions exactly flat.
        if gray.dtype not in (np.uint8, np.float32):
            gray = gray.astype(np.float32)
        src = cv2.UMat(gray) if self.use_opencl else gray

        blurred = cv2.GaussianBlur(src, self.kernel, self.sigma)
        gx = cv2.Sobel(blurred, cv2.CV_32F, 1, 0, ksize=3)
        gy = cv2.Sobel(blurred, cv2.CV_32F, 0, 1, ksize=3)
        # Image rows grow downward; flip so angles read with y pointing up.
        gy = cv2.multiply(gy, -1.0)
        mag, ang = cv2.cartToPolar(gx, gy, angleInDegrees=True)

        if self.use_opencl:
            mag, ang = mag.get(), ang.get()
        # cartToPolar can return exactly 360.0 through float rounding.
        ang[ang >= 360.0] = 0.0
        return GradientField(mag, ang)


class MagnitudeMask:
    """Binary mask of strong gradients for display. Not used for estimation."""

    def __init__(self, config: Config):
        self.threshold = float(config.MAGNITUDE_THRESHOLD)
        self.iterations = int(config.ERODE_ITERATIONS)
        k = max(1, int(config.ERODE_KERNEL_SIZE))
        self.kernel = cv2.getStructuringElement(cv2.MORPH_RECT, (k, k))

    def apply(self, magnitude: np.ndarray) -> np.ndarray:
        mag = magnitude.astype(np.float32, copy=False)
        norm = np.zeros_like(mag)
        if mag.size and float(mag.max()) > float(mag.min()):
            norm = cv2.normalize(mag, None, 0.0, 1.0, cv2.NORM_MINMAX)
        _, mask = cv2.threshold(norm, self.threshold, 1.0, cv2.THRESH_BINARY)
        if self.iterations > 0:
            mask = cv2.erode(mask, self.kernel, iterations=self.iterations)
        return mask
