"""Local-maximum search over a range of the orientation histogram."""

from __future__ import annotations

import numpy as np

from VISTA.config import Config, ConfigurationError
from VISTA.src.core.types import Peak


def smooth_circular(histogram: np.ndarray, window: int) -> np.ndarray:
    """Moving average that wraps around the 0/180 boundary."""
    hist = np.asarray(histogram, dtype=np.float64)
    if hist.size == 0 or window <= 1:
        return hist.copy()
    half = window // 2
    padded = hist[np.arange(-half, hist.size + half) % hist.size]
    kernel = np.full(window, 1.0 / window)
    return np.convolve(padded, kernel, mode="valid")


def rank_peaks(values: np.ndarray, offset: int = 0) -> list[Peak]:
    """
    Strict local maxima of ``values``, strongest first.

    Endpoints only compare against their one inner neighbour. Equal values are
    ordered by ascending bin index so the ranking is deterministic.
    """
    n = values.size
    if n < 2:
        return []

    is_peak = np.zeros(n, dtype=bool)
    is_peak[0] = values[0] > values[1]
    is_peak[-1] = values[-1] > values[-2]
    if n > 2:
        mid = values[1:-1]
        is_peak[1:-1] = (mid > values[:-2]) & (mid > values[2:])

    idx = np.flatnonzero(is_peak)
    # lexsort sorts by the last key first: value descending, then index ascending.
    order = np.lexsort((idx, -values[idx]))
    return [Peak(int(idx[i] + offset), float(values[idx[i]])) for i in order]


class PeakExtractor:
    def __init__(self, config: Config):
        window = int(config.PEAK_SMOOTHING_WINDOW)
        if window <= 0 or window % 2 == 0:
            raise ConfigurationError(f"PEAK_SMOOTHING_WINDOW must be a positive odd number (got {window})")
        if config.TOP_K_PEAKS <= 0:
            raise ConfigurationError(f"TOP_K_PEAKS must be positive (got {config.TOP_K_PEAKS})")
        self.window = window
        self.top_k = int(config.TOP_K_PEAKS)

    def find_peaks(
        self,
        histogram: np.ndarray,
        start: int = 0,
        end: int | None = None,
        smoothing_window: int | None = None,
        top_k: int | None = None,
    ) -> list[Peak]:
        """Top peaks inside ``[start, end)``; an empty list when there are none."""
        hist = np.asarray(histogram, dtype=np.float64)
        n = hist.size
        end = n if end is None else end
        start = max(0, int(start))
        end = min(n, int(end))
        if n == 0 or start >= end:
            return []

        window = self.window if smoothing_window is None else int(smoothing_window)
        smoothed = smooth_circular(hist, window)
        peaks = rank_peaks(smoothed[start:end], offset=start)
        return peaks[: self.top_k if top_k is None else int(top_k)]
