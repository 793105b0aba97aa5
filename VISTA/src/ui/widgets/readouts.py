from PyQt5 import QtWidgets

from VISTA.src.ui.theme import HEX_ACCENT, HEX_DANGER, HEX_SUCCESS, HEX_TEXT, HEX_WARNING


class ReadoutWidget(QtWidgets.QGroupBox):
    def __init__(self, parent=None):
        super().__init__("Readouts", parent)
        self.layout = QtWidgets.QGridLayout(self)

        self.lbl_angle = QtWidgets.QLabel("---")
        self.lbl_angle.setStyleSheet(f"font-size: 18px; font-weight: bold; color: {HEX_ACCENT};")
        self.layout.addWidget(QtWidgets.QLabel("Visual Vertical:"), 0, 0)
        self.layout.addWidget(self.lbl_angle, 0, 1)

        self.lbl_acc = QtWidgets.QLabel("---")
        self.lbl_acc.setStyleSheet("font-size: 16px; font-weight: bold;")
        self.layout.addWidget(QtWidgets.QLabel("Acceleration:"), 1, 0)
        self.layout.addWidget(self.lbl_acc, 1, 1)

        self.lbl_fps = QtWidgets.QLabel("0.0")
        self.layout.addWidget(QtWidgets.QLabel("Processing FPS:"), 2, 0)
        self.layout.addWidget(self.lbl_fps, 2, 1)

        self.lbl_status = QtWidgets.QLabel("Ready")
        self.lbl_status.setStyleSheet(f"color: {HEX_SUCCESS}; font-weight: bold;")
        self.layout.addWidget(QtWidgets.QLabel("Status:"), 3, 0)
        self.layout.addWidget(self.lbl_status, 3, 1)

    def update_result(self, angle, acc_x, acc_y, fps):
        self.lbl_angle.setText(f"{angle:.1f}°")
        self.lbl_acc.setText(f"x {acc_x:+.2f}  y {acc_y:+.2f} m/s²")
        self.lbl_acc.setStyleSheet(f"font-size: 16px; font-weight: bold; color: {HEX_TEXT};")
        self.lbl_fps.setText(f"{fps:.1f}")

    def clear_result(self):
        self.lbl_angle.setText("---")
        self.lbl_acc.setText("---")

    def update_status(self, msg):
        self.lbl_status.setText(msg)
        m = msg.lower()
        if "error" in m or "fail" in m:
            self.lbl_status.setStyleSheet(f"color: {HEX_DANGER}; font-weight: bold;")
        elif "processing" in m or "stopping" in m:
            self.lbl_status.setStyleSheet(f"color: {HEX_WARNING}; font-weight: bold;")
        else:
            self.lbl_status.setStyleSheet(f"color: {HEX_SUCCESS}; font-weight: bold;")
