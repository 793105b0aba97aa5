"""OpenCV overlays: histogram chart, VV indicators, and the composite view."""

from __future__ import annotations

import math

import cv2
import numpy as np

from VISTA.src.core.types import GRAVITY, HALF_CIRCLE_DEG, FrameResult, VVResult

WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
GREEN = (0, 255, 0)
RED = (0, 0, 255)
BAR_GRAY = (100, 100, 100)

TICK_STEP_DEG = 30
TICK_LENGTH = 5
HIST_HEIGHT_SCALE = 0.8
HIST_MIN_PEAK = 1e-3


def _angle_to_x(angle: float, width: int) -> int:
    # Angle axis is mirrored (180 on the left, 0 on the right) to match screen orientation.
    return int(round(width * (1.0 - float(angle) / HALF_CIRCLE_DEG)))


def render_histogram(
    histogram: np.ndarray,
    vv: VVResult,
    band: tuple[float, float],
    width: int,
    height: int,
) -> np.ndarray:
    """Bar chart of the histogram with the chosen angle and band boundaries."""
    img = np.full((height, width, 3), 255, dtype=np.uint8)
    hist = np.asarray(histogram, dtype=np.float64)
    total = float(hist.sum()) if hist.size else 0.0
    if hist.size == 0 or not np.isfinite(total) or total <= 0.0:
        return img

    norm = hist / total
    scale = HIST_HEIGHT_SCALE * height / max(float(norm.max()), HIST_MIN_PEAK)
    bin_deg = HALF_CIRCLE_DEG / hist.size
    for i, val in enumerate(norm):
        x0 = _angle_to_x((i + 1) * bin_deg, width)
        x1 = max(x0 + 1, _angle_to_x(i * bin_deg, width))
        bar_h = int(round(val * scale))
        if bar_h > 0:
            cv2.rectangle(img, (x0, height - bar_h), (x1 - 1, height), BAR_GRAY, cv2.FILLED)

    vx = _angle_to_x(vv.angle, width)
    cv2.line(img, (vx, 0), (vx, height), GREEN, 2, cv2.LINE_AA)
    for edge in band:
        ex = _angle_to_x(edge, width)
        cv2.line(img, (ex, 0), (ex, height), BLACK, 1, cv2.LINE_AA)

    for angle in range(0, int(HALF_CIRCLE_DEG) + 1, TICK_STEP_DEG):
        tx = min(width - 1, _angle_to_x(angle, width))
        cv2.line(img, (tx, height - TICK_LENGTH), (tx, height), BLACK, 1, cv2.LINE_AA)
        cv2.putText(img, str(angle), (max(0, tx - 10), height - 8), cv2.FONT_HERSHEY_SIMPLEX, 0.4, BLACK, 1, cv2.LINE_AA)
    return img


def draw_vv_indicators(image: np.ndarray, vv: VVResult, thickness: int = 2) -> np.ndarray:
    """Angle text, horizon/plumb guides, VV line, and acceleration arrow."""
    out = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR) if image.ndim == 2 else image.copy()
    h, w = out.shape[:2]
    cx, cy = w // 2, h // 2

    cv2.putText(out, f" VV_dig={int(vv.angle)}", (10, 30), cv2.FONT_HERSHEY_PLAIN, 1.5, GREEN, thickness, cv2.LINE_AA)
    cv2.line(out, (0, cy), (w, cy), BLACK, thickness, cv2.LINE_4)
    cv2.line(out, (cx, cy), (cx, h), BLACK, thickness, cv2.LINE_4)

    length = h / 2.0
    rad = math.radians(vv.angle)
    end = (int(cx + length * math.cos(rad)), int(cy - length * math.sin(rad)))
    cv2.line(out, (cx, cy), end, GREEN, thickness, cv2.LINE_AA)

    k = length / GRAVITY
    acc = (int(cx + vv.acc_x * k), int(cy - vv.acc_y * k))
    cv2.arrowedLine(out, (cx, cy), acc, RED, thickness, cv2.LINE_AA)
    return out


def _to_bgr8(field: np.ndarray) -> np.ndarray:
    f = np.asarray(field, dtype=np.float32)
    peak = float(f.max()) if f.size else 0.0
    if peak > 0:
        f = f / peak
    return cv2.cvtColor(np.clip(f * 255.0, 0, 255).astype(np.uint8), cv2.COLOR_GRAY2BGR)


def compose_view(
    frame: np.ndarray,
    upright: np.ndarray,
    result: FrameResult,
    band: tuple[float, float],
    hist_height: int,
    fps: float = 0.0,
) -> np.ndarray:
    """Stack input+corrected, magnitude+mask, and the histogram into one frame."""
    left = draw_vv_indicators(frame, result.vv)
    right = cv2.cvtColor(upright, cv2.COLOR_GRAY2BGR) if upright.ndim == 2 else upright.copy()
    h, w = left.shape[:2]
    if right.shape[:2] != (h, w):
        right = cv2.resize(right, (w, h))
    cv2.line(right, (0, h // 2), (w, h // 2), BLACK, 2, cv2.LINE_AA)
    top = np.hstack([left, right])

    mag = _to_bgr8(result.gradient.magnitude)
    mask = _to_bgr8(result.mask) if result.mask is not None else np.zeros_like(mag)
    middle = cv2.resize(np.hstack([mag, mask]), (top.shape[1], top.shape[0]))

    hist = render_histogram(result.histogram, result.vv, band, top.shape[1], hist_height)
    view = np.vstack([top, middle, hist])
    if fps > 0.0:
        cv2.putText(view, f"FPS: {fps:.1f}", (10, 60), cv2.FONT_HERSHEY_SIMPLEX, 0.7, GREEN, 2)
    return view
