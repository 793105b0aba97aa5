"""Background worker thread running the per-frame loop for the GUI."""

from __future__ import annotations

import logging
import queue
import time
from typing import Any, Callable, Optional

import numpy as np
from PyQt5 import QtCore

from VISTA.config import Config, ConfigurationError
from VISTA.src.core.pipeline import FramePipeline
from VISTA.src.core.session import SessionPaths, VideoSession, save_angle_plot, save_results_csv
from VISTA.src.core.types import FrameResult
from VISTA.src.drivers.video import FrameSource, FrameSourceError, VideoRecorder

logger = logging.getLogger(__name__)


class WorkerState:
    IDLE = "IDLE"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"


class ProcessingWorker(QtCore.QThread):
    new_image = QtCore.pyqtSignal(object)
    histogram_update = QtCore.pyqtSignal(object, float)
    result_update = QtCore.pyqtSignal(float, float, float, float)
    status_msg = QtCore.pyqtSignal(str)
    state_changed = QtCore.pyqtSignal(str)
    session_finished = QtCore.pyqtSignal(str)

    def __init__(self, config: Config, source_factory: Callable[[], FrameSource]):
        super().__init__()
        self.config = config
        self.source_factory = source_factory
        self.running = True
        self.state = WorkerState.IDLE

        self.command_queue: queue.Queue[tuple[str, Any]] = queue.Queue()
        self.pipeline = FramePipeline(config)
        self.session: Optional[VideoSession] = None
        self.source: Optional[FrameSource] = None
        self._misses = 0

    def _set_state(self, state: str) -> None:
        if self.state != state:
            self.state = state
            self.state_changed.emit(state)

    def start_session(self) -> None:
        self.command_queue.put(("START", None))

    def reset_estimator(self) -> None:
        self.command_queue.put(("RESET", None))

    def apply_config(self, config: Config) -> None:
        self.command_queue.put(("CONFIG", config))

    def request_stop(self) -> None:
        if self.session is None:
            return
        self.session.request_stop()
        self._set_state(WorkerState.STOPPING)
        self.status_msg.emit("Stopping...")

    def stop(self) -> None:
        self.request_stop()
        self.running = False
        self.wait()

    def run(self) -> None:
        while self.running:
            try:
                self._drain_commands()
                if self.session is not None:
                    self._live_step()
                else:
                    time.sleep(0.05)
            except Exception:
                self._set_state(WorkerState.ERROR)
                self.status_msg.emit("Worker error. Check logs for details.")
                logger.exception("Worker thread crashed")
                self._close_session()
                time.sleep(0.05)

        if self.session is not None:
            self._finish_session()

    def _drain_commands(self) -> None:
        while not self.command_queue.empty():
            cmd, val = self.command_queue.get_nowait()
            if cmd == "START":
                self._handle_start()
            elif cmd == "RESET":
                self.pipeline.reset()
                self.status_msg.emit("Estimator reset.")
            elif cmd == "CONFIG":
                self._handle_config(val)

    def _handle_config(self, config: Config) -> None:
        if self.session is not None:
            self.status_msg.emit("Error: stop the session before applying settings.")
            return
        try:
            config.validate()
        except ConfigurationError as e:
            self.status_msg.emit(f"Error: {e}")
            return
        self.config = config
        self.pipeline = FramePipeline(config)
        self.status_msg.emit("Settings applied.")

    def _handle_start(self) -> None:
        if self.session is not None:
            return
        try:
            self.source = self.source_factory()
        except FrameSourceError as e:
            logger.error("%s", e)
            self._set_state(WorkerState.ERROR)
            self.status_msg.emit(f"Error: {e}")
            return

        self.pipeline.reset()
        self.session = VideoSession(self.config, self.source, self.pipeline, on_frame=self._emit_frame)
        if self.session.save:
            self.session.paths = SessionPaths.create(self.config.RESULTS_DIR, self.source.name)
            self.session.recorder = VideoRecorder(self.session.paths.video, self.source.fps)
        self._misses = 0
        self._set_state(WorkerState.RUNNING)
        self.status_msg.emit(f"Processing {self.source.name}...")

    def _emit_frame(self, result: FrameResult, view: np.ndarray, fps: float) -> None:
        vv = result.vv
        self.new_image.emit(view)
        self.histogram_update.emit(result.histogram, vv.angle)
        self.result_update.emit(vv.angle, vv.acc_x, vv.acc_y, fps)

    def _live_step(self) -> None:
        if self.session.stop_requested:
            self._finish_session()
            return
        try:
            stepped = self.session.step()
        except FrameSourceError as e:
            logger.error("Recording stopped the session: %s", e)
            self._finish_session()
            return
        if stepped is not None:
            self._misses = 0
            return
        if not self.source.is_live:
            self._finish_session()
            return
        self._misses += 1
        if self._misses >= 30:
            self.status_msg.emit("Error: camera stopped delivering frames.")
            self._finish_session()

    def _finish_session(self) -> None:
        session = self.session
        results = session.pipeline.estimator.history
        self._close_session()

        msg = f"Session finished ({len(results)} frames)."
        if session.save and session.paths is not None:
            if save_results_csv(results, session.paths.csv):
                save_angle_plot(results, session.paths.plot)
                msg = f"Results saved to {session.paths.csv.name}"
                self.session_finished.emit(str(session.paths.csv))
        self.status_msg.emit(msg)
        self._set_state(WorkerState.FINISHED)

    def _close_session(self) -> None:
        if self.session is not None and self.session.recorder is not None:
            self.session.recorder.close()
        if self.source is not None:
            self.source.close()
        self.session = None
        self.source = None
