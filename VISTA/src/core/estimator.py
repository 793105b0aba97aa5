"""Visual vertical estimation with temporal smoothing."""

from __future__ import annotations

import logging
import math
from typing import Optional

import numpy as np

from VISTA.config import Config, ConfigurationError
from VISTA.src.core.types import HALF_CIRCLE_DEG, VVResult, bin_to_angle

logger = logging.getLogger(__name__)


class VerticalEstimator:
    """
    Turns orientation histograms into one stable angle per frame.

    The estimator holds the previous result and an append-only history for the
    session. Degenerate frames (no energy in the band, zero weights, NaN) hold
    the previous estimate instead of raising. One instance per video stream.
    """

    def __init__(self, config: Config):
        self.config = config
        self.min_angle = float(config.MIN_ANGLE_DEG)
        self.max_angle = float(config.MAX_ANGLE_DEG)
        self.alpha = float(config.SMOOTHING_FACTOR)
        self.top_k = int(config.TOP_K_PEAKS)
        self.num_bins = int(config.BIN_COUNT)

        if not 0.0 <= self.min_angle < self.max_angle <= HALF_CIRCLE_DEG:
            raise ConfigurationError(
                f"angular band [{self.min_angle}, {self.max_angle}] must satisfy 0 <= min < max <= 180"
            )
        if not 0.0 < self.alpha <= 1.0:
            raise ConfigurationError(f"SMOOTHING_FACTOR must be in (0, 1] (got {self.alpha})")
        if self.top_k <= 0:
            raise ConfigurationError(f"TOP_K_PEAKS must be positive (got {self.top_k})")
        if self.num_bins <= 0:
            raise ConfigurationError(f"BIN_COUNT must be positive (got {self.num_bins})")

        self.seed = VVResult.from_angle(config.SEED_ANGLE_DEG)
        self._previous: Optional[VVResult] = None
        self._history: list[VVResult] = []

    @property
    def previous(self) -> Optional[VVResult]:
        return self._previous

    @property
    def history(self) -> list[VVResult]:
        return list(self._history)

    def reset(self) -> None:
        self._previous = None
        self._history.clear()

    def band_bins(self, num_bins: int) -> np.ndarray:
        """Indices of the bins whose angle lies inside the inclusive band."""
        angles = bin_to_angle(np.arange(num_bins), num_bins)
        return np.flatnonzero((angles >= self.min_angle) & (angles <= self.max_angle))

    def select_bins(self, histogram: np.ndarray) -> np.ndarray:
        """Top-K positive in-band bins by raw value, ties by ascending index."""
        hist = np.asarray(histogram, dtype=np.float64)
        if hist.size == 0:
            return np.empty(0, dtype=np.int64)
        candidates = self.band_bins(hist.size)
        candidates = candidates[hist[candidates] > 0.0]
        if candidates.size == 0:
            return candidates
        order = np.lexsort((candidates, -hist[candidates]))
        return candidates[order[: self.top_k]]

    def estimate(self, histogram: np.ndarray, previous_result: Optional[VVResult] = None) -> VVResult:
        if previous_result is None:
            previous_result = self._previous if self._previous is not None else self.seed

        hist = np.asarray(histogram, dtype=np.float64)
        if hist.size and hist.size != self.num_bins:
            logger.debug("Histogram has %d bins, configured for %d", hist.size, self.num_bins)

        selected = self.select_bins(hist)
        if selected.size == 0:
            logger.debug("No in-band orientation energy; holding %.2f deg", previous_result.angle)
            return self._record(previous_result)

        weights = hist[selected]
        angles = bin_to_angle(selected.astype(np.float64), hist.size)
        weight_sum = float(weights.sum())
        if weight_sum > 0.0:
            angle = float(np.dot(angles, weights) / weight_sum)
        else:
            angle = previous_result.angle
        if math.isnan(angle):
            angle = previous_result.angle

        smoothed = self.alpha * angle + (1.0 - self.alpha) * previous_result.angle
        return self._record(VVResult.from_angle(smoothed))

    def _record(self, result: VVResult) -> VVResult:
        self._previous = result
        self._history.append(result)
        return result
