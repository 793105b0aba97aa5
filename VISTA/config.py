"""Application configuration with simple JSON persistence."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised once at startup or construction when parameters cannot work."""


def _parse_bool(raw) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, int) and raw in (0, 1):
        return bool(raw)
    if isinstance(raw, str) and raw.strip().lower() in ("true", "false", "1", "0", "yes", "no"):
        return raw.strip().lower() in ("true", "1", "yes")
    raise ValueError(f"not a boolean: {raw!r}")


@dataclass
class Config:
    # Input / output
    USE_CAMERA: bool = False
    CAMERA_PORT: int = 0
    INPUT_FILE_PATH: str = "./test.mp4"
    SCALE: int = 2
    SAVE_RESULTS: bool = True
    RESULTS_DIR: str = "results"

    # Gradient field & histogram
    BIN_COUNT: int = 180
    BLUR_KERNEL_SIZE: int = 11
    BLUR_SIGMA: float = 3.0
    MAGNITUDE_THRESHOLD: float = 0.25
    ERODE_KERNEL_SIZE: int = 3
    ERODE_ITERATIONS: int = 1
    USE_OPENCL: bool = False

    # Peak extraction
    PEAK_SMOOTHING_WINDOW: int = 5
    TOP_K_PEAKS: int = 3

    # Visual vertical estimator (degrees)
    MIN_ANGLE_DEG: float = 30.0
    MAX_ANGLE_DEG: float = 150.0
    SMOOTHING_FACTOR: float = 0.7
    SEED_ANGLE_DEG: float = 90.0

    # Display
    HIST_PLOT_HEIGHT: int = 200

    @staticmethod
    def default_path() -> Path:
        return Path.home() / ".vista_config.json"

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        cfg = cls()
        cfg_path = path or cls.default_path()
        if not cfg_path.exists():
            return cfg

        try:
            data = json.loads(cfg_path.read_text())
        except Exception:
            logger.exception("Failed to read config file: %s", cfg_path)
            return cfg

        for f in fields(cfg):
            if f.name not in data:
                continue
            raw = data[f.name]
            try:
                if f.type in (bool, "bool"):
                    val = _parse_bool(raw)
                elif f.type in (int, "int"):
                    val = int(raw)
                elif f.type in (float, "float"):
                    val = float(raw)
                else:
                    val = str(raw)
                setattr(cfg, f.name, val)
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid config value for %s", f.name)

        return cfg

    def save(self, path: Optional[Path] = None) -> None:
        cfg_path = path or self.default_path()
        cfg_path.write_text(json.dumps(asdict(self), indent=2, sort_keys=True))

    def validate(self) -> "Config":
        """Reject parameter combinations the per-frame path cannot handle."""
        problems: list[str] = []
        if self.BIN_COUNT <= 0:
            problems.append(f"BIN_COUNT must be positive (got {self.BIN_COUNT})")
        if self.TOP_K_PEAKS <= 0:
            problems.append(f"TOP_K_PEAKS must be positive (got {self.TOP_K_PEAKS})")
        if not 0.0 <= self.MIN_ANGLE_DEG < self.MAX_ANGLE_DEG <= 180.0:
            problems.append(
                f"angular band [{self.MIN_ANGLE_DEG}, {self.MAX_ANGLE_DEG}] must satisfy 0 <= min < max <= 180"
            )
        if not 0.0 < self.SMOOTHING_FACTOR <= 1.0:
            problems.append(f"SMOOTHING_FACTOR must be in (0, 1] (got {self.SMOOTHING_FACTOR})")
        if self.PEAK_SMOOTHING_WINDOW <= 0 or self.PEAK_SMOOTHING_WINDOW % 2 == 0:
            problems.append(f"PEAK_SMOOTHING_WINDOW must be a positive odd number (got {self.PEAK_SMOOTHING_WINDOW})")
        if self.BLUR_KERNEL_SIZE <= 0 or self.BLUR_KERNEL_SIZE % 2 == 0:
            problems.append(f"BLUR_KERNEL_SIZE must be a positive odd number (got {self.BLUR_KERNEL_SIZE})")
        if self.BLUR_SIGMA < 0:
            problems.append(f"BLUR_SIGMA must be >= 0 (got {self.BLUR_SIGMA})")
        if not 0.0 <= self.MAGNITUDE_THRESHOLD <= 1.0:
            problems.append(f"MAGNITUDE_THRESHOLD must be in [0, 1] (got {self.MAGNITUDE_THRESHOLD})")
        if self.ERODE_KERNEL_SIZE <= 0:
            problems.append(f"ERODE_KERNEL_SIZE must be positive (got {self.ERODE_KERNEL_SIZE})")
        if self.ERODE_ITERATIONS < 0:
            problems.append(f"ERODE_ITERATIONS must be >= 0 (got {self.ERODE_ITERATIONS})")
        if self.SCALE <= 0:
            problems.append(f"SCALE must be positive (got {self.SCALE})")
        if problems:
            raise ConfigurationError("; ".join(problems))
        return self
