"""Per-frame orchestration of the estimation chain."""

from __future__ import annotations

import logging
import time

import numpy as np

from VISTA.config import Config
from VISTA.src.core.estimator import VerticalEstimator
from VISTA.src.core.histogram import OrientationHistogram
from VISTA.src.core.peaks import PeakExtractor
from VISTA.src.core.processing import GradientFieldBuilder, ImageProcessor, MagnitudeMask, to_gray
from VISTA.src.core.types import FrameResult, angle_to_bin

logger = logging.getLogger(__name__)


class FramePipeline:
    """Gradient field -> histogram -> peaks -> estimate, one frame at a time."""

    def __init__(self, config: Config, estimator: VerticalEstimator | None = None):
        self.config = config
        self.processor = ImageProcessor(config)
        self.gradients = GradientFieldBuilder(config)
        self.masker = MagnitudeMask(config)
        self.histogram = OrientationHistogram(config.BIN_COUNT)
        self.peaks = PeakExtractor(config)
        self.estimator = estimator or VerticalEstimator(config)

        n = self.histogram.num_bins
        self.peak_start = angle_to_bin(config.MIN_ANGLE_DEG, n)
        self.peak_end = angle_to_bin(config.MAX_ANGLE_DEG, n) + 1

    def reset(self) -> None:
        self.estimator.reset()

    def _safe_mask(self, magnitude: np.ndarray) -> np.ndarray | None:
        try:
            return self.masker.apply(magnitude)
        except Exception:
            logger.exception("Magnitude mask failed; continuing without it")
            return None

    def process_frame(self, frame: np.ndarray, scaled: bool = False) -> FrameResult:
        """Run the full chain on one frame. ``scaled`` skips the SCALE downsize."""
        img = frame if scaled else self.processor.process_image(frame)
        gray = to_gray(img)

        field = self.gradients.compute(gray)
        hist = self.histogram.build(field.magnitude, field.angle)
        peaks = self.peaks.find_peaks(hist, self.peak_start, self.peak_end)
        vv = self.estimator.estimate(hist)
        mask = self._safe_mask(field.magnitude)
        return FrameResult(gray, field, mask, hist, peaks, vv)


class FPSCounter:
    """Per-frame and session-average processing rate."""

    def __init__(self):
        self.frame_count = 0
        self.total_time_s = 0.0
        self.fps = 0.0
        self._t0 = time.perf_counter()

    def tick_start(self) -> None:
        self._t0 = time.perf_counter()

    def tick_end(self) -> float:
        dt = time.perf_counter() - self._t0
        self.fps = 1.0 / dt if dt > 1e-9 else 0.0
        self.total_time_s += dt
        self.frame_count += 1
        return self.fps

    @property
    def average_fps(self) -> float:
        if self.frame_count > 0 and self.total_time_s > 1e-9:
            return self.frame_count / self.total_time_s
        return 0.0
