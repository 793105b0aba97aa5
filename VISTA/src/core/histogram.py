"""Magnitude-weighted orientation histogram over the half circle."""

from __future__ import annotations

import numpy as np

from VISTA.config import ConfigurationError
from VISTA.src.core.types import HALF_CIRCLE_DEG


def build_histogram(magnitude: np.ndarray, angle: np.ndarray, num_bins: int) -> np.ndarray:
    """
    Accumulate gradient magnitude per orientation bin and normalize to sum 1.

    A gradient and its 180 degree opposite describe the same line, so angles are
    folded into [0, 180) first. Zero total energy yields an all-zero histogram.
    """
    if num_bins <= 0:
        raise ConfigurationError(f"num_bins must be positive (got {num_bins})")
    if magnitude.shape != angle.shape:
        raise ValueError(f"magnitude {magnitude.shape} and angle {angle.shape} differ in shape")

    ang = np.mod(np.asarray(angle, dtype=np.float64).ravel(), HALF_CIRCLE_DEG)
    bins = np.floor(ang * num_bins / HALF_CIRCLE_DEG).astype(np.int64)
    np.clip(bins, 0, num_bins - 1, out=bins)

    weights = np.asarray(magnitude, dtype=np.float64).ravel()
    hist = np.bincount(bins, weights=weights, minlength=num_bins)

    total = float(hist.sum())
    if not np.isfinite(total) or total <= 0.0:
        return np.zeros(num_bins, dtype=np.float64)
    return hist / total


class OrientationHistogram:
    def __init__(self, num_bins: int = 180):
        if num_bins <= 0:
            raise ConfigurationError(f"BIN_COUNT must be positive (got {num_bins})")
        self.num_bins = int(num_bins)

    def build(self, magnitude: np.ndarray, angle: np.ndarray) -> np.ndarray:
        return build_histogram(magnitude, angle, self.num_bins)
