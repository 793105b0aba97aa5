import sys

from PyQt5 import QtWidgets

# Dark palette
COLOR_BG_DARK = "#1b1d21"
COLOR_BG_LIGHT = "#272a30"
COLOR_BORDER = "#3a3e46"
COLOR_TEXT = "#e2e4e8"
COLOR_TEXT_DIM = "#8a8f98"

# Accents
COLOR_ACCENT = "#2f81f7"
COLOR_SUCCESS = "#2ea043"
COLOR_DANGER = "#da3633"
COLOR_WARNING = "#c28a00"

HEX_BG_DARK = COLOR_BG_DARK
HEX_TEXT = COLOR_TEXT
HEX_TEXT_DIM = COLOR_TEXT_DIM
HEX_ACCENT = COLOR_ACCENT
HEX_SUCCESS = COLOR_SUCCESS
HEX_DANGER = COLOR_DANGER
HEX_WARNING = COLOR_WARNING

# Plot pens for the live histogram
PEN_BARS = "#8a8f98"
PEN_VV = "#3fdc6b"
PEN_BAND = "#e2e4e8"


def apply_theme(app: QtWidgets.QApplication):
    """Applies the global QSS stylesheet to the application."""
    if sys.platform.startswith("win"):
        font_stack = '"Segoe UI", "Arial", sans-serif'
    elif sys.platform == "darwin":
        font_stack = '"Helvetica Neue", "Arial", sans-serif'
    else:
        font_stack = '"DejaVu Sans", "Arial", sans-serif'

    qss = f"""
    QMainWindow, QWidget {{
        background-color: {COLOR_BG_DARK};
        color: {COLOR_TEXT};
        font-family: {font_stack};
        font-size: 13px;
    }}
    QGroupBox {{
        border: 1px solid {COLOR_BORDER};
        border-radius: 4px;
        margin-top: 1.2em;
        padding-top: 8px;
    }}
    QGroupBox::title {{
        subcontrol-origin: margin;
        left: 10px;
        color: {COLOR_TEXT_DIM};
        font-weight: bold;
        padding: 0 3px;
    }}
    QLabel {{
        border: none;
    }}
    QPushButton {{
        background-color: {COLOR_BG_LIGHT};
        border: 1px solid {COLOR_BORDER};
        padding: 5px 12px;
        border-radius: 4px;
    }}
    QPushButton:hover {{
        border-color: {COLOR_ACCENT};
    }}
    QPushButton:disabled {{
        color: #555;
        border-color: #2c2c2c;
    }}
    QPushButton[class="accent"] {{
        background-color: {COLOR_ACCENT};
        color: white;
    }}
    QPushButton[class="danger"] {{
        background-color: {COLOR_DANGER};
        color: white;
    }}
    QLineEdit, QSpinBox, QDoubleSpinBox, QComboBox {{
        background-color: {COLOR_BG_LIGHT};
        border: 1px solid {COLOR_BORDER};
        border-radius: 3px;
        padding: 3px;
        selection-background-color: {COLOR_ACCENT};
    }}
    QScrollBar:vertical {{
        background: {COLOR_BG_DARK};
        width: 10px;
    }}
    QScrollBar::handle:vertical {{
        background: #444;
        min-height: 20px;
        border-radius: 5px;
    }}
    """

    app.setStyleSheet(qss)
