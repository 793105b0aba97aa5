import sys
import argparse
import logging
from functools import partial
from pathlib import Path

from PyQt5 import QtWidgets
import pyqtgraph as pg

from VISTA.config import Config, ConfigurationError
from VISTA.src.core.session import VideoSession
from VISTA.src.core.worker import ProcessingWorker, WorkerState
from VISTA.src.drivers.video import FrameSourceError, open_source
from VISTA.src.ui.layouts.live import LivePage
from VISTA.src.ui.layouts.settings import SettingsPage

logger = logging.getLogger(__name__)


class MainWindow(QtWidgets.QMainWindow):
    def __init__(self, config: Config, simulate: bool = False, config_path=None):
        super().__init__()
        self.config = config

        self.worker = ProcessingWorker(config, partial(open_source, config, simulate))
        self.worker.start()

        self.setWindowTitle("VISTA: Visual Vertical Tracking")
        self.resize(1100, 850)

        self.init_menu()

        self.stack = QtWidgets.QStackedWidget()
        self.setCentralWidget(self.stack)

        self.live_page = LivePage(self.worker, config, source_label(config, simulate))
        self.stack.addWidget(self.live_page)

        self.settings_page = SettingsPage(config, config_path)
        self.stack.addWidget(self.settings_page)

        self.live_page.settings_requested.connect(lambda: self.stack.setCurrentIndex(1))
        self.settings_page.back_requested.connect(lambda: self.stack.setCurrentIndex(0))
        self.settings_page.settings_applied.connect(self.on_settings_applied)
        self.worker.session_finished.connect(lambda path: logger.info("Session results: %s", path))

    def init_menu(self):
        menubar = self.menuBar()

        vista_menu = menubar.addMenu("VISTA")
        vista_menu.addAction("Start", self.worker.start_session)
        vista_menu.addAction("Stop", self.worker.request_stop)
        vista_menu.addAction("Reset Estimator", self.worker.reset_estimator)
        vista_menu.addSeparator()
        vista_menu.addAction("Quit", self.close)

        window_menu = menubar.addMenu("Window")
        window_menu.addAction("Live View", lambda: self.stack.setCurrentIndex(0))
        self.act_settings = window_menu.addAction("Settings", lambda: self.stack.setCurrentIndex(1))
        self.worker.state_changed.connect(self.on_state_changed)

    def on_state_changed(self, state: str):
        self.act_settings.setEnabled(state not in {WorkerState.RUNNING, WorkerState.STOPPING})

    def on_settings_applied(self):
        self.live_page.apply_config_update(self.config)
        self.stack.setCurrentIndex(0)

    def closeEvent(self, event):
        logger.info("Closing application...")
        self.worker.stop()
        event.accept()


def source_label(config: Config, simulate: bool) -> str:
    if simulate:
        return "Simulation"
    if config.USE_CAMERA:
        return f"Camera {config.CAMERA_PORT}"
    return Path(config.INPUT_FILE_PATH).name


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Estimate the visual vertical of a video stream.")
    source = parser.add_mutually_exclusive_group()
    source.add_argument("-i", "--inputfile", help="Video file to process")
    source.add_argument("-c", "--camera", action="store_true", help="Read frames from a camera")
    parser.add_argument("-cp", "--camera_port", type=int, help="Camera index (default from config)")
    parser.add_argument("-s", "--scale", type=int, help="Integer downscale factor applied to each frame")
    parser.add_argument("--config", type=Path, help="Config JSON path (default ~/.vista_config.json)")
    parser.add_argument("--sim", action="store_true", help="Run on a synthetic tilting scene")
    parser.add_argument("--headless", action="store_true", help="Process without opening a window")
    parser.add_argument("--no-save", action="store_true", help="Do not write CSV, plot or video")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def apply_args(config: Config, args: argparse.Namespace) -> Config:
    if args.inputfile:
        config.USE_CAMERA = False
        config.INPUT_FILE_PATH = args.inputfile
    elif args.camera:
        config.USE_CAMERA = True
    if args.camera_port is not None:
        config.CAMERA_PORT = args.camera_port
    if args.scale is not None:
        config.SCALE = args.scale
    if args.no_save:
        config.SAVE_RESULTS = False
    return config


def run_headless(config: Config, simulate: bool) -> int:
    try:
        source = open_source(config, simulate)
    except FrameSourceError as e:
        logger.error("%s", e)
        return 1

    try:
        results = VideoSession(config, source).run()
    finally:
        source.close()

    if results:
        last = results[-1]
        logger.info("Final VV: %.1f deg (acc_x=%.2f, acc_y=%.2f)", last.angle, last.acc_x, last.acc_y)
    return 0


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not (args.inputfile or args.camera or args.sim):
        parser.error("Specify a video file (-i), a camera (-c) or --sim.")

    config = apply_args(Config.load(args.config), args)
    try:
        config.validate()
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    if args.headless:
        return run_headless(config, args.sim)

    app = QtWidgets.QApplication(sys.argv)
    pg.setConfigOptions(imageAxisOrder='row-major')

    from VISTA.src.ui.theme import apply_theme
    apply_theme(app)

    window = MainWindow(config, args.sim, args.config)
    window.show()

    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
