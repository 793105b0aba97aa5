import logging

from PyQt5 import QtWidgets, QtCore

from VISTA.config import Config, ConfigurationError

logger = logging.getLogger(__name__)


class SettingsPage(QtWidgets.QWidget):
    settings_applied = QtCore.pyqtSignal()
    back_requested = QtCore.pyqtSignal()

    def __init__(self, config: Config, config_path=None, parent=None):
        super().__init__(parent)
        self.config = config
        self.config_path = config_path or config.default_path()
        self.fields = {}

        self._build_ui()
        self.load_from_config(self.config)

    def _build_ui(self):
        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(12, 12, 12, 12)
        layout.setSpacing(10)

        header = QtWidgets.QHBoxLayout()
        title = QtWidgets.QLabel("Settings")
        title.setStyleSheet("font-size: 18px; font-weight: bold;")
        header.addWidget(title)
        header.addStretch()

        self.btn_back = QtWidgets.QPushButton("Back to Live View")
        self.btn_back.clicked.connect(lambda: self.back_requested.emit())
        header.addWidget(self.btn_back)
        layout.addLayout(header)

        self.lbl_path = QtWidgets.QLabel(f"Config file: {self.config_path}")
        self.lbl_path.setStyleSheet("font-size: 11px; color: #888;")
        layout.addWidget(self.lbl_path)

        scroll = QtWidgets.QScrollArea()
        scroll.setWidgetResizable(True)
        layout.addWidget(scroll, stretch=1)

        container = QtWidgets.QWidget()
        scroll.setWidget(container)
        form_layout = QtWidgets.QVBoxLayout(container)
        form_layout.setSpacing(12)

        form_layout.addWidget(self._build_gradient_group())
        form_layout.addWidget(self._build_peak_group())
        form_layout.addWidget(self._build_estimator_group())
        form_layout.addWidget(self._build_output_group())
        form_layout.addStretch()

        buttons = QtWidgets.QHBoxLayout()
        self.lbl_error = QtWidgets.QLabel("")
        self.lbl_error.setStyleSheet("color: #da3633;")
        buttons.addWidget(self.lbl_error)
        buttons.addStretch()
        self.btn_reset = QtWidgets.QPushButton("Reset to Defaults")
        self.btn_save = QtWidgets.QPushButton("Save Settings")
        self.btn_save.setProperty("class", "accent")
        self.btn_reset.clicked.connect(self.on_reset_defaults)
        self.btn_save.clicked.connect(self.on_save)
        buttons.addWidget(self.btn_reset)
        buttons.addWidget(self.btn_save)
        layout.addLayout(buttons)

    def _build_gradient_group(self) -> QtWidgets.QGroupBox:
        group = QtWidgets.QGroupBox("Gradient Field & Histogram")
        layout = QtWidgets.QFormLayout(group)
        layout.setLabelAlignment(QtCore.Qt.AlignRight)

        self._add_int(layout, "Downscale Factor", "SCALE", 1, 16, 1, "", "Frames are shrunk by this factor before processing.")
        self._add_int(layout, "Histogram Bins", "BIN_COUNT", 1, 3600, 1, "", "Number of bins over [0, 180) degrees.")
        self._add_int(
            layout,
            "Blur Kernel",
            "BLUR_KERNEL_SIZE",
            1,
            99,
            2,
            " px",
            "Gaussian kernel size applied before the Sobel derivatives. Must be odd.",
        )
        self._add_float(layout, "Blur Sigma", "BLUR_SIGMA", 0.0, 50.0, 0.5, 2, "", "Gaussian sigma. 0 lets OpenCV derive it.")
        self._add_float(
            layout,
            "Mask Threshold",
            "MAGNITUDE_THRESHOLD",
            0.0,
            1.0,
            0.05,
            2,
            "",
            "Fraction of the normalized magnitude kept by the display mask.",
        )
        self._add_int(layout, "Erode Kernel", "ERODE_KERNEL_SIZE", 1, 31, 1, " px")
        self._add_int(layout, "Erode Iterations", "ERODE_ITERATIONS", 0, 10, 1)
        self._add_bool(layout, "Use OpenCL", "USE_OPENCL", "Offload blur and Sobel to OpenCL when available.")
        return group

    def _build_peak_group(self) -> QtWidgets.QGroupBox:
        group = QtWidgets.QGroupBox("Peak Extraction")
        layout = QtWidgets.QFormLayout(group)
        layout.setLabelAlignment(QtCore.Qt.AlignRight)

        self._add_int(
            layout,
            "Smoothing Window",
            "PEAK_SMOOTHING_WINDOW",
            1,
            99,
            2,
            " bins",
            "Circular moving average applied before local maxima are ranked. Must be odd.",
        )
        self._add_int(layout, "Top K", "TOP_K_PEAKS", 1, 50, 1, "", "How many bins/peaks contribute to the estimate.")
        return group

    def _build_estimator_group(self) -> QtWidgets.QGroupBox:
        group = QtWidgets.QGroupBox("Visual Vertical Estimator")
        layout = QtWidgets.QFormLayout(group)
        layout.setLabelAlignment(QtCore.Qt.AlignRight)

        self._add_float(layout, "Band Min", "MIN_ANGLE_DEG", 0.0, 180.0, 1.0, 1, " deg", "Lower edge of the accepted angle band.")
        self._add_float(layout, "Band Max", "MAX_ANGLE_DEG", 0.0, 180.0, 1.0, 1, " deg", "Upper edge of the accepted angle band.")
        self._add_float(
            layout,
            "Smoothing Factor",
            "SMOOTHING_FACTOR",
            0.01,
            1.0,
            0.05,
            2,
            "",
            "Weight of the new frame in the blend with the previous angle. 1 disables smoothing.",
        )
        self._add_float(layout, "Seed Angle", "SEED_ANGLE_DEG", 0.0, 180.0, 1.0, 1, " deg", "Angle assumed before the first frame.")
        return group

    def _build_output_group(self) -> QtWidgets.QGroupBox:
        group = QtWidgets.QGroupBox("Output")
        layout = QtWidgets.QFormLayout(group)
        layout.setLabelAlignment(QtCore.Qt.AlignRight)

        self._add_bool(layout, "Save Results", "SAVE_RESULTS", "Write CSV, plot and annotated video per session.")
        self._add_text(layout, "Results Folder", "RESULTS_DIR")
        self._add_int(layout, "Histogram Height", "HIST_PLOT_HEIGHT", 50, 1000, 10, " px")
        return group

    def _add_float(self, layout, label, key, min_v, max_v, step, decimals, suffix, help_text=""):
        w = QtWidgets.QDoubleSpinBox()
        w.setRange(min_v, max_v)
        w.setDecimals(decimals)
        w.setSingleStep(step)
        if suffix:
            w.setSuffix(suffix)
        layout.addRow(label + ":", self._wrap_with_help(w, help_text))
        self.fields[key] = w

    def _add_int(self, layout, label, key, min_v, max_v, step, suffix="", help_text=""):
        w = QtWidgets.QSpinBox()
        w.setRange(min_v, max_v)
        w.setSingleStep(step)
        if suffix:
            w.setSuffix(suffix)
        layout.addRow(label + ":", self._wrap_with_help(w, help_text))
        self.fields[key] = w

    def _add_bool(self, layout, label, key, help_text=""):
        w = QtWidgets.QCheckBox()
        layout.addRow(label + ":", self._wrap_with_help(w, help_text))
        self.fields[key] = w

    def _add_text(self, layout, label, key, help_text=""):
        w = QtWidgets.QLineEdit()
        w.setMinimumWidth(220)
        layout.addRow(label + ":", self._wrap_with_help(w, help_text))
        self.fields[key] = w

    def _wrap_with_help(self, widget, help_text: str):
        if not help_text:
            return widget
        row = QtWidgets.QHBoxLayout()
        row.setContentsMargins(0, 0, 0, 0)
        row.addWidget(widget)
        info = QtWidgets.QLabel("ℹ")
        info.setToolTip(help_text)
        info.setStyleSheet("color: #9aa0a6; font-size: 12px; padding-left: 6px;")
        row.addWidget(info)
        row.addStretch()
        wrapper = QtWidgets.QWidget()
        wrapper.setLayout(row)
        return wrapper

    def load_from_config(self, config: Config):
        for key, widget in self.fields.items():
            val = getattr(config, key)
            if isinstance(widget, QtWidgets.QCheckBox):
                widget.setChecked(bool(val))
            elif isinstance(widget, QtWidgets.QLineEdit):
                widget.setText(str(val))
            else:
                widget.setValue(val)

    def on_reset_defaults(self):
        self.load_from_config(Config())

    def _read_fields(self) -> Config:
        candidate = Config(**vars(self.config))
        for key, widget in self.fields.items():
            if isinstance(widget, QtWidgets.QCheckBox):
                val = widget.isChecked()
            elif isinstance(widget, QtWidgets.QLineEdit):
                val = widget.text().strip()
            else:
                val = widget.value()
            setattr(candidate, key, val)
        return candidate

    def on_save(self):
        candidate = self._read_fields()
        try:
            candidate.validate()
        except ConfigurationError as e:
            self.lbl_error.setText(str(e))
            logger.warning("Rejected settings: %s", e)
            return

        self.lbl_error.setText("")
        for key in self.fields:
            setattr(self.config, key, getattr(candidate, key))
        self.config.save(self.config_path)
        self.load_from_config(self.config)
        self.settings_applied.emit()
