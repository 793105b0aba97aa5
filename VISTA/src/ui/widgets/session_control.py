from PyQt5 import QtWidgets, QtCore


class SessionControlWidget(QtWidgets.QGroupBox):
    # Signals for parent to handle
    start_requested = QtCore.pyqtSignal()
    stop_requested = QtCore.pyqtSignal()
    reset_requested = QtCore.pyqtSignal()
    settings_requested = QtCore.pyqtSignal()

    def __init__(self, source_label="", parent=None):
        super().__init__("Controls", parent)
        self.layout = QtWidgets.QGridLayout(self)
        self.layout.setHorizontalSpacing(10)
        self.layout.setVerticalSpacing(8)

        # Row 1: source and session buttons
        self.layout.addWidget(QtWidgets.QLabel("Source:"), 0, 0)
        self.lbl_source = QtWidgets.QLabel(source_label or "---")
        self.lbl_source.setStyleSheet("font-weight: bold;")
        self.layout.addWidget(self.lbl_source, 0, 1)

        self.btn_start = QtWidgets.QPushButton("Start")
        self.btn_start.setProperty("class", "accent")
        self.btn_start.clicked.connect(lambda: self.start_requested.emit())
        self.btn_start.setToolTip("Open the source and start estimating")
        self.layout.addWidget(self.btn_start, 0, 2)

        self.btn_stop = QtWidgets.QPushButton("Stop")
        self.btn_stop.setProperty("class", "danger")
        self.btn_stop.clicked.connect(lambda: self.stop_requested.emit())
        self.btn_stop.setToolTip("Stop the session and save results")
        self.btn_stop.setEnabled(False)
        self.layout.addWidget(self.btn_stop, 0, 3)

        # Row 2: estimator and display options
        self.btn_reset = QtWidgets.QPushButton("Reset VV")
        self.btn_reset.clicked.connect(lambda: self.reset_requested.emit())
        self.btn_reset.setToolTip("Clear history and return to the seed angle")
        self.layout.addWidget(self.btn_reset, 1, 0)

        self.btn_settings = QtWidgets.QPushButton("Settings")
        self.btn_settings.setToolTip("Open settings")
        self.btn_settings.clicked.connect(lambda: self.settings_requested.emit())
        self.layout.addWidget(self.btn_settings, 1, 1)

        self.check_band = QtWidgets.QCheckBox("Band Overlay")
        self.check_band.setChecked(True)
        self.check_band.setToolTip("Show/hide the angle band on the histogram")
        self.layout.addWidget(self.check_band, 1, 2, 1, 2)

    def set_running(self, running):
        self.btn_start.setEnabled(not running)
        self.btn_stop.setEnabled(running)
        self.btn_settings.setEnabled(not running)
