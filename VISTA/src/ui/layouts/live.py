"""Live page: composite view, orientation histogram, readouts and controls."""

from __future__ import annotations

import logging
from dataclasses import replace

import numpy as np
from PyQt5 import QtCore, QtGui, QtWidgets
import pyqtgraph as pg

from VISTA.config import Config
from VISTA.src.core.types import HALF_CIRCLE_DEG, bin_width
from VISTA.src.core.worker import ProcessingWorker, WorkerState
from VISTA.src.ui.theme import HEX_BG_DARK, PEN_BAND, PEN_BARS, PEN_VV
from VISTA.src.ui.widgets.readouts import ReadoutWidget
from VISTA.src.ui.widgets.session_control import SessionControlWidget

logger = logging.getLogger(__name__)


class LivePage(QtWidgets.QWidget):
    settings_requested = QtCore.pyqtSignal()

    def __init__(self, worker: ProcessingWorker, config: Config, source_label: str = ""):
        super().__init__()
        self.worker = worker
        self.config = config
        self.source_label = source_label

        self.hist_bars = None
        self._prev_shape = None

        self._build_ui()
        self._connect_signals()
        self.set_ui_state(WorkerState.IDLE)

    def _build_ui(self) -> None:
        layout = QtWidgets.QVBoxLayout(self)

        self.splitter = QtWidgets.QSplitter(QtCore.Qt.Vertical)

        self.imv = pg.ImageView()
        self.imv.ui.histogram.hide()
        self.imv.ui.roiBtn.hide()
        self.imv.ui.menuBtn.hide()
        self.imv.view.setAspectLocked(True)
        self.imv.view.invertY(True)
        self.imv.view.setMenuEnabled(False)

        self.vb = self.imv.getView()
        self.vb.setBackgroundColor(HEX_BG_DARK)

        self.plot_container = pg.GraphicsLayoutWidget()
        self.plot_container.setBackground(HEX_BG_DARK)
        self.plot_container.setMinimumHeight(160)

        self.p_hist = self.plot_container.addPlot(title="Orientation Histogram")
        self.p_hist.showGrid(x=True, y=True, alpha=0.3)
        self.p_hist.setLabel("left", "Weight")
        self.p_hist.setLabel("bottom", "Orientation", units="deg")
        self.p_hist.setXRange(0.0, HALF_CIRCLE_DEG, padding=0.01)
        # Mirror the angle axis so 180 sits on the left, as in the rendered overlay.
        self.p_hist.getViewBox().invertX(True)

        self.line_vv = pg.InfiniteLine(angle=90, movable=False, pen=pg.mkPen(PEN_VV, width=2))
        self.p_hist.addItem(self.line_vv)

        band_pen = pg.mkPen(PEN_BAND, width=1, style=QtCore.Qt.DashLine)
        self.line_band_min = pg.InfiniteLine(pos=self.config.MIN_ANGLE_DEG, angle=90, movable=False, pen=band_pen)
        self.line_band_max = pg.InfiniteLine(pos=self.config.MAX_ANGLE_DEG, angle=90, movable=False, pen=band_pen)
        self.p_hist.addItem(self.line_band_min)
        self.p_hist.addItem(self.line_band_max)

        self.splitter.addWidget(self.imv)
        self.splitter.addWidget(self.plot_container)
        self.splitter.setStretchFactor(0, 3)
        self.splitter.setStretchFactor(1, 1)

        layout.addWidget(self.splitter, stretch=16)

        bottom_panel = QtWidgets.QHBoxLayout()
        layout.addLayout(bottom_panel, stretch=4)

        self.readouts = ReadoutWidget()
        self.controls = SessionControlWidget(self.source_label)
        self.readouts.setSizePolicy(QtWidgets.QSizePolicy.Expanding, QtWidgets.QSizePolicy.Preferred)
        self.controls.setSizePolicy(QtWidgets.QSizePolicy.Expanding, QtWidgets.QSizePolicy.Preferred)
        bottom_panel.addWidget(self.readouts, 1)
        bottom_panel.addWidget(self.controls, 1)

    def _connect_signals(self) -> None:
        self.worker.new_image.connect(self.update_image)
        self.worker.histogram_update.connect(self.update_histogram)
        self.worker.result_update.connect(self.readouts.update_result)
        self.worker.status_msg.connect(self.readouts.update_status)
        self.worker.state_changed.connect(self.set_ui_state)

        self.controls.start_requested.connect(self.on_start)
        self.controls.stop_requested.connect(self.worker.request_stop)
        self.controls.reset_requested.connect(self.on_reset)
        self.controls.settings_requested.connect(lambda: self.settings_requested.emit())
        self.controls.check_band.stateChanged.connect(self.on_band_toggled)

        QtWidgets.QShortcut(QtGui.QKeySequence("Ctrl+R"), self, activated=self.on_reset)
        QtWidgets.QShortcut(QtGui.QKeySequence("Space"), self, activated=self.on_toggle_session)

    def on_start(self) -> None:
        self.readouts.clear_result()
        self.worker.start_session()

    def on_reset(self) -> None:
        self.readouts.clear_result()
        self.worker.reset_estimator()

    def on_toggle_session(self) -> None:
        if self.worker.state in {WorkerState.RUNNING, WorkerState.STOPPING}:
            self.worker.request_stop()
        else:
            self.on_start()

    def on_band_toggled(self, checked: int) -> None:
        visible = bool(checked)
        self.line_band_min.setVisible(visible)
        self.line_band_max.setVisible(visible)

    def set_ui_state(self, state: str) -> None:
        running = state in {WorkerState.RUNNING, WorkerState.STOPPING}
        self.controls.set_running(running)
        if state == WorkerState.STOPPING:
            self.controls.btn_stop.setEnabled(False)

    def update_image(self, img: np.ndarray) -> None:
        if img is None:
            return

        # Worker frames are OpenCV BGR.
        rgb = np.ascontiguousarray(img[..., ::-1]) if img.ndim == 3 else img
        h, w = rgb.shape[:2]
        if self._prev_shape != (h, w):
            self.vb.setRange(QtCore.QRectF(0, 0, w, h), padding=0)
            self._prev_shape = (h, w)
            logger.debug("Live view resized to %dx%d", w, h)

        self.imv.setImage(rgb, autoRange=False, autoLevels=False, levels=(0, 255))

    def update_histogram(self, histogram: np.ndarray, vv_angle: float) -> None:
        hist = np.asarray(histogram, dtype=np.float64)
        if hist.size == 0:
            return

        width = bin_width(hist.size)
        centers = (np.arange(hist.size) + 0.5) * width
        if self.hist_bars is None or len(self.hist_bars.opts["x"]) != hist.size:
            if self.hist_bars is not None:
                self.p_hist.removeItem(self.hist_bars)
            self.hist_bars = pg.BarGraphItem(x=centers, height=hist, width=width, brush=PEN_BARS, pen=None)
            self.p_hist.addItem(self.hist_bars)
        else:
            self.hist_bars.setOpts(height=hist)

        self.line_vv.setValue(vv_angle)

    def apply_config_update(self, config: Config) -> None:
        self.config = config
        self.line_band_min.setValue(config.MIN_ANGLE_DEG)
        self.line_band_max.setValue(config.MAX_ANGLE_DEG)
        self.worker.apply_config(replace(config))
