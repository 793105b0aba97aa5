"""Shared core data structures used across estimation and orchestration."""

from __future__ import annotations

import math
from typing import NamedTuple, Optional

import numpy as np

GRAVITY = 9.8
HALF_CIRCLE_DEG = 180.0


class GradientField(NamedTuple):
    """Per-pixel gradient magnitude and direction (degrees, [0, 360))."""

    magnitude: np.ndarray
    angle: np.ndarray


class Peak(NamedTuple):
    bin_index: int
    value: float


class VVResult(NamedTuple):
    """Visual vertical estimate. Build it with ``from_angle`` only."""

    angle: float
    angle_rad: float
    acc_x: float
    acc_y: float

    @classmethod
    def from_angle(cls, angle: float) -> "VVResult":
        angle = float(angle)
        rad = angle * math.pi / 180.0
        return cls(angle, rad, GRAVITY * math.cos(rad), GRAVITY * math.sin(rad))


class FrameResult(NamedTuple):
    """Everything the pipeline derives from one frame."""

    gray: np.ndarray
    gradient: GradientField
    mask: Optional[np.ndarray]
    histogram: np.ndarray
    peaks: list
    vv: VVResult


def bin_width(num_bins: int) -> float:
    return HALF_CIRCLE_DEG / float(num_bins)


def bin_to_angle(index, num_bins: int):
    """Bin index (or array of indices) to degrees on the half circle."""
    return index * bin_width(num_bins)


def angle_to_bin(angle: float, num_bins: int) -> int:
    """Degrees to the bin holding that angle, clamped to the histogram."""
    idx = int(math.floor(float(angle) / bin_width(num_bins)))
    return max(0, min(num_bins - 1, idx))
