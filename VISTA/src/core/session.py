"""Video session loop and result export."""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import matplotlib
import matplotlib.pyplot as plt
import numpy as np

from VISTA.config import Config
from VISTA.src.core.overlay import compose_view
from VISTA.src.core.pipeline import FPSCounter, FramePipeline
from VISTA.src.core.types import FrameResult, VVResult
from VISTA.src.drivers.video import FrameSource, FrameSourceError, VideoRecorder

matplotlib.use("Agg")

logger = logging.getLogger(__name__)

CSV_HEADER = ["VV_acc_x[m/s^2]", "VV_acc_y[m/s^2]", "VV_acc_rad", "VV_acc_dig"]


@dataclass
class SessionPaths:
    directory: Path
    csv: Path
    video: Path
    plot: Path

    @classmethod
    def create(cls, results_dir: str | Path, source_name: str, now: Optional[datetime] = None) -> "SessionPaths":
        now = now or datetime.now()
        directory = Path(results_dir) / now.strftime("%Y%m%d")
        time_part = now.strftime("%H%M%S")
        if source_name == "camera":
            stem = f"camera_{time_part}"
            video_stem = stem
        else:
            stem = f"VV_{source_name}_{time_part}"
            video_stem = f"VV_Video_{source_name}_{time_part}"
        return cls(
            directory=directory,
            csv=directory / f"{stem}.csv",
            video=directory / f"{video_stem}.mp4",
            plot=directory / f"{stem}.png",
        )


def save_results_csv(results: list[VVResult], path: Path) -> bool:
    if not results:
        logger.error("No results to save.")
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        writer.writerows((r.acc_x, r.acc_y, r.angle_rad, r.angle) for r in results)
    logger.info("Results saved to: %s", path)
    return True


def save_angle_plot(results: list[VVResult], path: Path) -> bool:
    if not results:
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    frames = np.arange(len(results))
    angles = [r.angle for r in results]
    acc_x = [r.acc_x for r in results]
    acc_y = [r.acc_y for r in results]

    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(10, 8), sharex=True)
    ax1.plot(frames, angles, "b-", lw=1.5, label="Visual vertical")
    ax1.axhline(90.0, color="k", lw=0.8, ls="--")
    ax1.set_title("Visual Vertical Angle")
    ax1.set_ylabel("Angle (deg)")
    ax1.grid(True, which="both", linestyle="-", alpha=0.6)
    ax1.legend()

    ax2.plot(frames, acc_x, "r-", lw=1.5, label="acc_x")
    ax2.plot(frames, acc_y, "g-", lw=1.5, label="acc_y")
    ax2.set_title("Acceleration Components")
    ax2.set_xlabel("Frame")
    ax2.set_ylabel("Acceleration (m/s²)")
    ax2.grid(True, which="both", linestyle="-", alpha=0.6)
    ax2.legend()

    plt.tight_layout()
    plt.savefig(path)
    plt.close(fig)
    return True


class VideoSession:
    """Runs a source through the pipeline strictly frame by frame."""

    def __init__(
        self,
        config: Config,
        source: FrameSource,
        pipeline: Optional[FramePipeline] = None,
        save: Optional[bool] = None,
        on_frame: Optional[Callable[[FrameResult, np.ndarray, float], None]] = None,
    ):
        self.config = config
        self.source = source
        self.pipeline = pipeline or FramePipeline(config)
        self.save = config.SAVE_RESULTS if save is None else save
        self.on_frame = on_frame
        self.fps = FPSCounter()
        self.stop_requested = False
        self.paths: Optional[SessionPaths] = None
        self.recorder: Optional[VideoRecorder] = None
        self.band = (float(config.MIN_ANGLE_DEG), float(config.MAX_ANGLE_DEG))

    def request_stop(self) -> None:
        self.stop_requested = True

    def step(self) -> Optional[tuple[FrameResult, np.ndarray]]:
        """Process one frame. None when the source has nothing to give."""
        frame = self.source.read()
        if frame is None:
            return None

        self.fps.tick_start()
        small = self.pipeline.processor.process_image(frame)
        result = self.pipeline.process_frame(small, scaled=True)
        fps = self.fps.tick_end()

        upright = self.pipeline.processor.rotate_upright(small, result.vv.angle)
        view = compose_view(small, upright, result, self.band, self.config.HIST_PLOT_HEIGHT, fps)
        if self.recorder is not None:
            self.recorder.write(view)
        if self.on_frame is not None:
            self.on_frame(result, view, fps)
        return result, view

    def run(self, max_frames: Optional[int] = None) -> list[VVResult]:
        self.stop_requested = False
        if self.save:
            self.paths = SessionPaths.create(self.config.RESULTS_DIR, self.source.name)
            self.paths.directory.mkdir(parents=True, exist_ok=True)
            logger.info("Results will be saved to directory: %s", self.paths.directory.resolve())
            self.recorder = VideoRecorder(self.paths.video, self.source.fps)

        w, h = self.source.frame_size
        logger.info("Source %s: %dx%d at %.1f fps", self.source.name, w, h, self.source.fps)

        processed = 0
        misses = 0
        try:
            while not self.stop_requested:
                if max_frames is not None and processed >= max_frames:
                    break
                if self.step() is None:
                    if not self.source.is_live:
                        break
                    misses += 1
                    if misses >= 30:
                        logger.error("Live source stopped delivering frames.")
                        break
                    continue
                misses = 0
                processed += 1
        except KeyboardInterrupt:
            logger.info("Interrupted by user.")
        except FrameSourceError as e:
            logger.error("Recording stopped the session: %s", e)
        finally:
            if self.recorder is not None:
                self.recorder.close()

        logger.info("Processed %d frames (avg %.1f fps)", processed, self.fps.average_fps)
        results = self.pipeline.estimator.history
        if self.save and self.paths is not None:
            save_results_csv(results, self.paths.csv)
            save_angle_plot(results, self.paths.plot)
        return results
