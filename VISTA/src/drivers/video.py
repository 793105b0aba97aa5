"""Frame sources (file, camera, simulated) and the annotated video writer."""

from __future__ import annotations

import logging
import math
import sys
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from VISTA.config import Config

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30.0


class FrameSourceError(RuntimeError):
    """A capture device or file could not be opened."""


class FrameSource(ABC):
    @abstractmethod
    def read(self) -> Optional[np.ndarray]: pass
    @abstractmethod
    def close(self) -> None: pass
    @property
    @abstractmethod
    def fps(self) -> float: pass
    @property
    @abstractmethod
    def frame_size(self) -> tuple[int, int]: pass
    @property
    def is_live(self) -> bool:
        return False
    @property
    def name(self) -> str:
        return "source"


class _CaptureSource(FrameSource):
    def __init__(self, cap: cv2.VideoCapture, label: str):
        self._cap = cap
        self._label = label
        if not self._cap.isOpened():
            raise FrameSourceError(f"Could not open video source: {label}")

    def read(self) -> Optional[np.ndarray]:
        ok, frame = self._cap.read()
        if not ok or frame is None or frame.size == 0:
            return None
        return frame

    def close(self) -> None:
        if self._cap.isOpened():
            self._cap.release()

    @property
    def fps(self) -> float:
        fps = float(self._cap.get(cv2.CAP_PROP_FPS))
        return fps if fps > 0 else DEFAULT_FPS

    @property
    def frame_size(self) -> tuple[int, int]:
        w = int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        h = int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        return w, h


class VideoFileSource(_CaptureSource):
    def __init__(self, path: str | Path):
        self.path = Path(path)
        super().__init__(cv2.VideoCapture(str(self.path)), str(self.path))
        logger.info("Opened video file %s (%.1f fps)", self.path, self.fps)

    @property
    def name(self) -> str:
        return self.path.stem


class CameraSource(_CaptureSource):
    def __init__(self, port: int = 0):
        self.port = int(port)
        backend = cv2.CAP_DSHOW if sys.platform.startswith("win") else cv2.CAP_ANY
        super().__init__(cv2.VideoCapture(self.port, backend), f"camera #{self.port}")
        logger.info("Opened camera #%d", self.port)

    @property
    def is_live(self) -> bool:
        return True

    @property
    def name(self) -> str:
        return "camera"


class SyntheticFrameSource(FrameSource):
    """Striped scene whose visual vertical sways around upright."""

    def __init__(
        self,
        width: int = 640,
        height: int = 480,
        base_angle: float = 90.0,
        sway_deg: float = 15.0,
        period_frames: int = 120,
        stripe_px: float = 24.0,
        max_frames: Optional[int] = None,
        realtime: bool = False,
    ):
        self.width = int(width)
        self.height = int(height)
        self.base_angle = float(base_angle)
        self.sway_deg = float(sway_deg)
        self.period_frames = max(1, int(period_frames))
        self.stripe_px = float(stripe_px)
        self.max_frames = max_frames
        self.realtime = realtime
        self.frame_index = 0

        # Pre-computed relative coordinates, y pointing up
        x = np.arange(self.width, dtype=np.float32) - self.width / 2.0
        y = self.height / 2.0 - np.arange(self.height, dtype=np.float32)
        self.xx, self.yy = np.meshgrid(x, y)

    def angle_at(self, index: int) -> float:
        return self.base_angle + self.sway_deg * math.sin(2.0 * math.pi * index / self.period_frames)

    def read(self) -> Optional[np.ndarray]:
        if self.max_frames is not None and self.frame_index >= self.max_frames:
            return None
        phi = math.radians(self.angle_at(self.frame_index))
        self.frame_index += 1

        # Intensity varies along phi, so the gradient direction is phi.
        u = self.xx * math.cos(phi) + self.yy * math.sin(phi)
        img = 127.5 + 100.0 * np.sin(2.0 * np.pi * u / self.stripe_px)
        img += np.random.normal(0.0, 2.0, img.shape)
        gray = np.clip(img, 0, 255).astype(np.uint8)

        if self.realtime:
            time.sleep(1.0 / DEFAULT_FPS)
        return cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)

    def close(self) -> None:
        logger.info("Synthetic source closed after %d frames", self.frame_index)

    @property
    def fps(self) -> float:
        return DEFAULT_FPS

    @property
    def frame_size(self) -> tuple[int, int]:
        return self.width, self.height

    @property
    def is_live(self) -> bool:
        return self.max_frames is None

    @property
    def name(self) -> str:
        return "synthetic"


def open_source(config: Config, simulate: bool = False) -> FrameSource:
    if simulate:
        return SyntheticFrameSource(realtime=True)
    if config.USE_CAMERA:
        return CameraSource(config.CAMERA_PORT)
    return VideoFileSource(config.INPUT_FILE_PATH)


class VideoRecorder:
    """Lazily opened mp4 writer; the frame size is taken from the first frame."""

    def __init__(self, path: str | Path, fps: float = DEFAULT_FPS):
        self.path = Path(path)
        self.fps = fps if fps > 0 else DEFAULT_FPS
        self._writer: Optional[cv2.VideoWriter] = None
        self._size: Optional[tuple[int, int]] = None
        self.frames_written = 0

    def write(self, frame: np.ndarray) -> None:
        h, w = frame.shape[:2]
        if self._writer is None:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fourcc = cv2.VideoWriter_fourcc(*"mp4v")
            self._writer = cv2.VideoWriter(str(self.path), fourcc, self.fps, (w, h))
            if not self._writer.isOpened():
                raise FrameSourceError(f"Could not create video writer for: {self.path}")
            self._size = (w, h)
            logger.info("Video will be saved to: %s", self.path)
        if (w, h) != self._size:
            frame = cv2.resize(frame, self._size)
        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        self._writer.write(frame)
        self.frames_written += 1

    def close(self) -> None:
        if self._writer is not None:
            self._writer.release()
            self._writer = None
